from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

import structlog

from .encoding import (
    bool_to_bytes,
    bytes_to_bool,
    bytes_to_int,
    bytes_to_ints,
    bytes_to_text,
    int_to_bytes,
    ints_to_bytes,
    text_to_bytes,
)
from .errors import AlreadyExistsError, NotFoundError, StoreError, ValidationError
from .models import ListInfo, Task, TaskList

log = structlog.get_logger()

CURRENT_LIST_KEY = "current_list"
KEYMAP_PATH_KEY = "keymap_path"

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS settings (
    key    TEXT PRIMARY KEY,
    value  BLOB NOT NULL
);

CREATE TABLE IF NOT EXISTS list_info (
    list         BLOB PRIMARY KEY,
    name         BLOB NOT NULL,
    num_done     BLOB NOT NULL, -- 8-byte big-endian
    num_pending  BLOB NOT NULL,
    num_tasks    BLOB NOT NULL
);

CREATE TABLE IF NOT EXISTS list_data (
    list      BLOB PRIMARY KEY,
    task_ids  BLOB NOT NULL, -- packed 8-byte ids in manual order
    FOREIGN KEY (list) REFERENCES list_info(list) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS tasks (
    list         BLOB NOT NULL,
    id           BLOB NOT NULL,
    description  BLOB NOT NULL,
    done         BLOB NOT NULL, -- single byte 0/1
    PRIMARY KEY (list, id),
    FOREIGN KEY (list) REFERENCES list_info(list) ON DELETE CASCADE
);
"""


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    """
    One connection per store operation, committed as a single transaction.

    Any exception rolls everything back; sqlite failures surface as StoreError.
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path)
    except (OSError, sqlite3.Error) as e:
        raise StoreError(f"could not open database {db_path}: {e}") from e
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreError(f"database error: {e}") from e
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: Path) -> None:
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)


# -------------------- settings --------------------


def _get_setting(conn: sqlite3.Connection, key: str) -> str:
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return bytes_to_text(row["value"]) if row else ""


def _set_setting(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT INTO settings (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, text_to_bytes(value)),
    )


def _set_current(conn: sqlite3.Connection, name: str) -> None:
    _set_setting(conn, CURRENT_LIST_KEY, name)


def get_current_list_name(db_path: Path) -> str:
    """Name of the active list, or '' when none is selected."""
    with connect(db_path) as conn:
        return _get_setting(conn, CURRENT_LIST_KEY)


def set_current_list_name(db_path: Path, name: str) -> None:
    if not name:
        raise ValidationError("current list name cannot be empty")
    with connect(db_path) as conn:
        _set_current(conn, name)


def get_keymap_path(db_path: Path) -> str:
    with connect(db_path) as conn:
        return _get_setting(conn, KEYMAP_PATH_KEY)


def set_keymap_path(db_path: Path, path: str) -> None:
    """Store the key-binding override file; '' reverts to the built-in bindings."""
    with connect(db_path) as conn:
        _set_setting(conn, KEYMAP_PATH_KEY, path)


# -------------------- row helpers --------------------


def _key(name: str) -> bytes:
    return text_to_bytes(name)


def _exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute("SELECT 1 FROM list_info WHERE list = ?", (_key(name),)).fetchone()
    return row is not None


def _row_to_info(row: sqlite3.Row) -> ListInfo:
    return ListInfo(
        name=bytes_to_text(row["name"]),
        num_done=bytes_to_int(row["num_done"]),
        num_pending=bytes_to_int(row["num_pending"]),
        num_tasks=bytes_to_int(row["num_tasks"]),
    )


def _read_list(conn: sqlite3.Connection, name: str) -> TaskList:
    key = _key(name)
    if not _exists(conn, name):
        raise NotFoundError(f"list {name!r} not found")
    data = conn.execute("SELECT task_ids FROM list_data WHERE list = ?", (key,)).fetchone()
    if data is None:
        raise NotFoundError(f"data record for list {name!r} not found")

    rows = conn.execute("SELECT id, description, done FROM tasks WHERE list = ?", (key,)).fetchall()
    by_id = {bytes_to_int(r["id"]): r for r in rows}

    task_list = TaskList.empty(name)
    for task_id in bytes_to_ints(data["task_ids"]):
        row = by_id.get(task_id)
        if row is None:
            raise NotFoundError(f"task record {task_id} of list {name!r} not found")
        task_list.order.append(task_id)
        task_list.tasks[task_id] = Task(
            id=task_id,
            description=bytes_to_text(row["description"]),
            done=bytes_to_bool(row["done"]),
        )
    task_list.used_ids.update(task_list.tasks)
    task_list.recount()
    task_list.check_invariants()
    return task_list


def _write_list(conn: sqlite3.Connection, task_list: TaskList) -> None:
    name = task_list.name
    if not name:
        raise ValidationError("list name cannot be empty")
    info = task_list.recount()
    key = _key(name)

    conn.execute(
        """
        INSERT INTO list_info (list, name, num_done, num_pending, num_tasks)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(list) DO UPDATE SET
            name = excluded.name,
            num_done = excluded.num_done,
            num_pending = excluded.num_pending,
            num_tasks = excluded.num_tasks
        """,
        (
            key,
            text_to_bytes(info.name),
            int_to_bytes(info.num_done),
            int_to_bytes(info.num_pending),
            int_to_bytes(info.num_tasks),
        ),
    )
    conn.execute(
        "INSERT INTO list_data (list, task_ids) VALUES (?, ?) "
        "ON CONFLICT(list) DO UPDATE SET task_ids = excluded.task_ids",
        (key, ints_to_bytes(task_list.order)),
    )
    conn.execute("DELETE FROM tasks WHERE list = ?", (key,))
    conn.executemany(
        "INSERT INTO tasks (list, id, description, done) VALUES (?, ?, ?, ?)",
        [
            (key, int_to_bytes(t.id), text_to_bytes(t.description), bool_to_bytes(t.done))
            for t in (task_list.tasks[tid] for tid in task_list.order)
        ],
    )


def _delete(conn: sqlite3.Connection, name: str) -> None:
    conn.execute("DELETE FROM list_info WHERE list = ?", (_key(name),))


# -------------------- lists --------------------


def get_info(db_path: Path) -> Dict[str, ListInfo]:
    """Counters of every stored list, keyed by name."""
    with connect(db_path) as conn:
        rows = conn.execute("SELECT * FROM list_info").fetchall()
        return {info.name: info for info in map(_row_to_info, rows)}


def list_names(db_path: Path) -> Set[str]:
    return set(get_info(db_path))


def list_exists(db_path: Path, name: str) -> bool:
    with connect(db_path) as conn:
        return _exists(conn, name)


def get_list(db_path: Path, name: str) -> TaskList:
    with connect(db_path) as conn:
        return _read_list(conn, name)


def save_list(db_path: Path, task_list: TaskList) -> None:
    """Write the whole list; counters are recomputed from its tasks first."""
    with connect(db_path) as conn:
        _write_list(conn, task_list)
    log.debug("list saved", list=task_list.name, tasks=task_list.info.num_tasks)


def merge_generated(db_path: Path, lists: Iterable[TaskList]) -> None:
    """
    Add a batch of new lists without touching existing ones.

    Any clash, with the store or inside the batch, rejects the whole batch.
    """
    batch = list(lists)
    with connect(db_path) as conn:
        seen: Set[str] = set()
        for task_list in batch:
            if task_list.name in seen or _exists(conn, task_list.name):
                raise AlreadyExistsError(f"list {task_list.name!r} already exists")
            seen.add(task_list.name)
        for task_list in batch:
            _write_list(conn, task_list)
    log.debug("lists merged", lists=[t.name for t in batch])


def rename_list(db_path: Path, old_name: str, new_name: str) -> None:
    """
    Copy the old list under the new key, drop the old one, then fix the stored
    name and the current-list pointer. One transaction end to end.
    """
    if not new_name:
        raise ValidationError("new list name cannot be empty")
    old_key, new_key = _key(old_name), _key(new_name)
    with connect(db_path) as conn:
        if not _exists(conn, old_name):
            raise NotFoundError(f"list {old_name!r} not found")
        if _exists(conn, new_name):
            raise AlreadyExistsError(f"list {new_name!r} already exists")

        conn.execute(
            """
            INSERT INTO list_info (list, name, num_done, num_pending, num_tasks)
            SELECT ?, name, num_done, num_pending, num_tasks FROM list_info WHERE list = ?
            """,
            (new_key, old_key),
        )
        conn.execute(
            "INSERT INTO list_data (list, task_ids) SELECT ?, task_ids FROM list_data WHERE list = ?",
            (new_key, old_key),
        )
        conn.execute(
            """
            INSERT INTO tasks (list, id, description, done)
            SELECT ?, id, description, done FROM tasks WHERE list = ?
            """,
            (new_key, old_key),
        )
        _delete(conn, old_name)

        conn.execute("UPDATE list_info SET name = ? WHERE list = ?", (text_to_bytes(new_name), new_key))
        if _get_setting(conn, CURRENT_LIST_KEY) == old_name:
            _set_current(conn, new_name)
    log.debug("list renamed", old=old_name, new=new_name)


def delete_lists(db_path: Path, names: Iterable[str]) -> None:
    """Remove the named lists; unknown names are ignored."""
    names = list(names)
    with connect(db_path) as conn:
        current = _get_setting(conn, CURRENT_LIST_KEY)
        for name in names:
            if name == current:
                _set_current(conn, "")
            _delete(conn, name)
    log.debug("lists deleted", lists=names)


def delete_all_lists(db_path: Path) -> None:
    with connect(db_path) as conn:
        _set_current(conn, "")
        conn.execute("DELETE FROM list_info")
    log.debug("all lists deleted")


def _clean(conn: sqlite3.Connection, names: Iterable[str]) -> int:
    removed = 0
    for name in names:
        if not name or not _exists(conn, name):
            continue
        task_list = _read_list(conn, name)
        count = task_list.remove_done()
        if count:
            _write_list(conn, task_list)
        removed += count
    return removed


def clean_lists(db_path: Path, names: Iterable[str]) -> int:
    """Drop done tasks from the named lists; returns how many were removed."""
    with connect(db_path) as conn:
        removed = _clean(conn, names)
    log.debug("lists cleaned", removed=removed)
    return removed


def clean_all_lists(db_path: Path) -> int:
    with connect(db_path) as conn:
        names: List[str] = [
            bytes_to_text(r["list"]) for r in conn.execute("SELECT list FROM list_info").fetchall()
        ]
        removed = _clean(conn, names)
    log.debug("all lists cleaned", removed=removed)
    return removed


def clean_current_list(db_path: Path) -> int:
    with connect(db_path) as conn:
        removed = _clean(conn, [_get_setting(conn, CURRENT_LIST_KEY)])
    log.debug("current list cleaned", removed=removed)
    return removed


def resolve_list_name(db_path: Path, name: Optional[str] = None) -> str:
    """The given name, or the current list when none is given."""
    if name:
        return name
    current = get_current_list_name(db_path)
    if not current:
        raise NotFoundError("no list selected; create one with 'new' or pick one with 'switch'")
    return current
