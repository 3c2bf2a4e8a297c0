import sqlite3
from pathlib import Path

import pytest

from listkeeper import db
from listkeeper.encoding import text_to_bytes
from listkeeper.errors import AlreadyExistsError, NotFoundError, StoreError, ValidationError
from listkeeper.models import ListInfo, TaskList


def _db(tmp_path: Path) -> Path:
    db_path = tmp_path / "t.db"
    db.init_db(db_path)
    return db_path


def _make_list(name, *items):
    tl = TaskList.empty(name)
    for description, done in items:
        tl.add_new_task(description, done)
    return tl


def _descriptions(tl):
    return [(tl.tasks[i].description, tl.tasks[i].done) for i in tl.order]


def test_save_and_get_list(tmp_path: Path):
    db_path = _db(tmp_path)
    tl = _make_list("Chores", ("dishes", False), ("laundry", True), ("vacuum", False))
    db.save_list(db_path, tl)

    loaded = db.get_list(db_path, "Chores")
    assert loaded.order == tl.order
    assert _descriptions(loaded) == _descriptions(tl)
    assert loaded.info == ListInfo(name="Chores", num_done=1, num_pending=2, num_tasks=3)
    assert loaded.used_ids == set(tl.order)


def test_save_recomputes_counters(tmp_path: Path):
    db_path = _db(tmp_path)
    tl = _make_list("Chores", ("dishes", True))
    tl.info.num_done = 99
    tl.info.num_pending = 7
    db.save_list(db_path, tl)

    assert db.get_info(db_path)["Chores"] == ListInfo("Chores", num_done=1, num_pending=0, num_tasks=1)


def test_get_missing_list(tmp_path: Path):
    db_path = _db(tmp_path)
    with pytest.raises(NotFoundError):
        db.get_list(db_path, "nope")


def test_get_list_with_missing_task_record(tmp_path: Path):
    db_path = _db(tmp_path)
    tl = _make_list("Chores", ("dishes", False), ("laundry", False))
    db.save_list(db_path, tl)

    conn = sqlite3.connect(db_path)
    conn.execute("DELETE FROM tasks WHERE list = ? AND description = ?", (text_to_bytes("Chores"), text_to_bytes("laundry")))
    conn.commit()
    conn.close()

    with pytest.raises(NotFoundError):
        db.get_list(db_path, "Chores")


def test_current_list_name(tmp_path: Path):
    db_path = _db(tmp_path)
    assert db.get_current_list_name(db_path) == ""

    db.set_current_list_name(db_path, "Work")
    assert db.get_current_list_name(db_path) == "Work"

    with pytest.raises(ValidationError):
        db.set_current_list_name(db_path, "")
    assert db.resolve_list_name(db_path) == "Work"
    assert db.resolve_list_name(db_path, "Home") == "Home"


def test_resolve_without_current_list(tmp_path: Path):
    db_path = _db(tmp_path)
    with pytest.raises(NotFoundError):
        db.resolve_list_name(db_path)


def test_keymap_path_setting(tmp_path: Path):
    db_path = _db(tmp_path)
    assert db.get_keymap_path(db_path) == ""
    db.set_keymap_path(db_path, "/home/me/keys.yaml")
    assert db.get_keymap_path(db_path) == "/home/me/keys.yaml"
    db.set_keymap_path(db_path, "")
    assert db.get_keymap_path(db_path) == ""


def test_list_names_and_exists(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A"))
    db.save_list(db_path, _make_list("B", ("x", False)))

    assert db.list_names(db_path) == {"A", "B"}
    assert db.list_exists(db_path, "A")
    assert not db.list_exists(db_path, "C")


def test_rename_moves_list_and_current_pointer(tmp_path: Path):
    db_path = _db(tmp_path)
    tl = _make_list("Groceries", ("Milk", True), ("Eggs", False))
    db.save_list(db_path, tl)
    db.set_current_list_name(db_path, "Groceries")

    db.rename_list(db_path, "Groceries", "Shopping")

    assert db.list_names(db_path) == {"Shopping"}
    assert db.get_current_list_name(db_path) == "Shopping"
    renamed = db.get_list(db_path, "Shopping")
    assert renamed.name == "Shopping"
    assert renamed.order == tl.order
    assert _descriptions(renamed) == _descriptions(tl)


def test_rename_keeps_unrelated_current_list(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A"))
    db.save_list(db_path, _make_list("B"))
    db.set_current_list_name(db_path, "B")

    db.rename_list(db_path, "A", "C")
    assert db.get_current_list_name(db_path) == "B"


def test_rename_errors(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A"))
    db.save_list(db_path, _make_list("B"))

    with pytest.raises(AlreadyExistsError):
        db.rename_list(db_path, "A", "B")
    with pytest.raises(NotFoundError):
        db.rename_list(db_path, "missing", "C")
    with pytest.raises(ValidationError):
        db.rename_list(db_path, "A", "")
    assert db.list_names(db_path) == {"A", "B"}


def test_rename_failure_rolls_back(tmp_path: Path, monkeypatch):
    db_path = _db(tmp_path)
    tl = _make_list("Old", ("one", False), ("two", True))
    db.save_list(db_path, tl)
    db.set_current_list_name(db_path, "Old")

    def fail(conn, name):
        raise RuntimeError("disk went away")

    monkeypatch.setattr(db, "_set_current", fail)
    with pytest.raises(RuntimeError):
        db.rename_list(db_path, "Old", "New")
    monkeypatch.undo()

    assert db.list_names(db_path) == {"Old"}
    assert db.get_current_list_name(db_path) == "Old"
    assert _descriptions(db.get_list(db_path, "Old")) == _descriptions(tl)


def test_delete_lists_clears_current(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A", ("x", False)))
    db.save_list(db_path, _make_list("B"))
    db.set_current_list_name(db_path, "A")

    db.delete_lists(db_path, ["A", "unknown"])

    assert db.list_names(db_path) == {"B"}
    assert db.get_current_list_name(db_path) == ""


def test_delete_all_lists(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A", ("x", False)))
    db.save_list(db_path, _make_list("B"))
    db.set_current_list_name(db_path, "B")

    db.delete_all_lists(db_path)
    assert db.list_names(db_path) == set()
    assert db.get_current_list_name(db_path) == ""


def test_clean_current_list(tmp_path: Path):
    db_path = _db(tmp_path)
    tl = _make_list("Chores", ("a", True), ("b", False), ("c", True), ("d", False), ("e", True))
    db.save_list(db_path, tl)
    db.set_current_list_name(db_path, "Chores")

    assert db.clean_current_list(db_path) == 3

    cleaned = db.get_list(db_path, "Chores")
    assert _descriptions(cleaned) == [("b", False), ("d", False)]
    assert db.get_info(db_path)["Chores"] == ListInfo("Chores", num_done=0, num_pending=2, num_tasks=2)


def test_clean_current_list_without_current(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A", ("x", True)))
    assert db.clean_current_list(db_path) == 0
    assert db.get_info(db_path)["A"].num_done == 1


def test_clean_lists_and_all(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("A", ("x", True), ("y", False)))
    db.save_list(db_path, _make_list("B", ("z", True), ("w", True)))
    db.save_list(db_path, _make_list("C", ("v", True)))

    assert db.clean_lists(db_path, ["A", "missing"]) == 1
    assert db.clean_all_lists(db_path) == 3
    infos = db.get_info(db_path)
    assert [infos[n].num_tasks for n in ("A", "B", "C")] == [1, 0, 0]


def test_merge_generated(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("Existing"))

    db.merge_generated(db_path, [_make_list("Trip", ("pack", False)), _make_list("Party")])
    assert db.list_names(db_path) == {"Existing", "Trip", "Party"}
    assert _descriptions(db.get_list(db_path, "Trip")) == [("pack", False)]


def test_merge_generated_rejects_whole_batch(tmp_path: Path):
    db_path = _db(tmp_path)
    db.save_list(db_path, _make_list("Existing", ("keep", False)))

    with pytest.raises(AlreadyExistsError):
        db.merge_generated(db_path, [_make_list("New"), _make_list("Existing")])
    with pytest.raises(AlreadyExistsError):
        db.merge_generated(db_path, [_make_list("Twice"), _make_list("Twice")])

    assert db.list_names(db_path) == {"Existing"}
    assert _descriptions(db.get_list(db_path, "Existing")) == [("keep", False)]


def test_unopenable_database(tmp_path: Path):
    with pytest.raises(StoreError):
        db.init_db(tmp_path)


def test_get_list_checks_invariants_once(tmp_path: Path, monkeypatch):
    db_path = _db(tmp_path)
    tl = _make_list("Big", *[(f"task {i}", i % 3 == 0) for i in range(200)])
    db.save_list(db_path, tl)

    calls = []
    check = TaskList.check_invariants

    def counting(self):
        calls.append(self.name)
        check(self)

    monkeypatch.setattr(TaskList, "check_invariants", counting)
    loaded = db.get_list(db_path, "Big")

    assert calls == ["Big"]
    assert loaded.order == tl.order
    assert loaded.used_ids == set(tl.order)
    assert loaded.info == ListInfo("Big", num_done=67, num_pending=133, num_tasks=200)
