from __future__ import annotations

import argparse
import sys
from functools import partial
from pathlib import Path
from typing import Optional

import structlog

from . import db, transfer
from .config import default_db_path, default_log_path
from .editor import ModalEditor
from .errors import AlreadyExistsError, ListkeeperError, ValidationError
from .keymap import load_keymap
from .logging_config import setup_logging
from .models import TaskList

log = structlog.get_logger()


def _db_path_from_args(ns: argparse.Namespace) -> Path:
    if getattr(ns, "db", None):
        return Path(ns.db).expanduser().resolve()
    return default_db_path()


def _open_db(ns: argparse.Namespace) -> Path:
    path = _db_path_from_args(ns)
    db.init_db(path)
    return path


def _print_tasks(task_list: TaskList) -> None:
    if not task_list.tasks:
        print(f"No tasks found in list '{task_list.name}'.")
        return
    pending, done = task_list.split_by_completion()
    print(f"{task_list.name}\n")
    for t in pending:
        print(f"- [ ] {t.description}")
    for t in done:
        print(f"- [x] {t.description}")


def cmd_new(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    for name in ns.names:
        if not name:
            raise ValidationError("list name cannot be empty")
        if db.list_exists(path, name):
            raise AlreadyExistsError(f'List "{name}" already exists.')
    for name in ns.names:
        db.save_list(path, TaskList.empty(name))
    db.set_current_list_name(path, ns.names[-1])
    print("Created new lists:")
    for name in ns.names:
        print(f"  - {name}")
    return 0


def cmd_list(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    infos = db.get_info(path)
    if not infos:
        print("No lists found.")
        return 0
    current = db.get_current_list_name(path)
    print(f"   {'DONE':>4} {'TODO':>4}  NAME")
    print("-" * 40)
    for name in sorted(infos):
        info = infos[name]
        mark = "*" if name == current else " "
        print(f" {mark} {info.num_done:>4} {info.num_pending:>4}  {name}")
    return 0


def cmd_show(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    name = db.resolve_list_name(path, ns.name)
    _print_tasks(db.get_list(path, name))
    return 0


def cmd_switch(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    if not db.list_exists(path, ns.name):
        print(f"List '{ns.name}' not found.", file=sys.stderr)
        return 1
    db.set_current_list_name(path, ns.name)
    print(f"Switched to list: {ns.name}")
    return 0


def cmd_rename(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    db.rename_list(path, ns.old, ns.new)
    print(f"Renamed list '{ns.old}' to '{ns.new}'")
    return 0


def cmd_delete(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    if ns.all:
        db.delete_all_lists(path)
        print("Deleted all lists.")
        return 0
    if not ns.names:
        print("Name at least one list or pass --all.", file=sys.stderr)
        return 1
    db.delete_lists(path, ns.names)
    print(f"Deleted lists: {', '.join(ns.names)}")
    return 0


def cmd_clean(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    if ns.all:
        removed = db.clean_all_lists(path)
    elif ns.names:
        removed = db.clean_lists(path, ns.names)
    else:
        removed = db.clean_current_list(path)
    print(f"Removed {removed} completed task(s).")
    return 0


def cmd_open(ns: argparse.Namespace) -> int:
    from .tui import open_session

    path = _open_db(ns)
    name = db.resolve_list_name(path, ns.name)
    keymap = load_keymap(db.get_keymap_path(path))
    task_list = db.get_list(path, name)
    setup_logging(ns.verbose, default_log_path(path))
    editor = ModalEditor(task_list, keymap, save=partial(db.save_list, path))
    open_session(editor)
    return 0


def cmd_export(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    names = ns.names or [db.resolve_list_name(path)]
    lists = [db.get_list(path, name) for name in names]
    out = Path(ns.file).expanduser().resolve()
    transfer.dump_lists(lists, out)
    print(f'Exported the following lists to "{out}":')
    for task_list in lists:
        print(f"  - {task_list.name}")
    return 0


def cmd_import(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    data_path = Path(ns.file).expanduser().resolve()
    lists = transfer.load_lists(data_path)
    db.merge_generated(path, lists)
    print(f"Imported from: {data_path}")
    for task_list in lists:
        print(f"  - {task_list.name} ({task_list.info.num_tasks} tasks)")
    return 0


def cmd_merge(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    lists = transfer.load_generated(Path(ns.file).expanduser().resolve())
    db.merge_generated(path, lists)
    print(f"Added {len(lists)} generated list(s).")
    return 0


def cmd_kmap_show(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    kmap = db.get_keymap_path(path)
    if not kmap:
        print("No file set. Using defaults.")
        return 0
    print(f"Using {kmap} for key-mapping.")
    if not Path(kmap).exists():
        print("WARNING: File does not exist. Using defaults.")
    return 0


def cmd_kmap_set(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    kmap = Path(ns.file).expanduser().resolve()
    if not kmap.is_file():
        print(f"Key-mapping file not found: {kmap}", file=sys.stderr)
        return 1
    load_keymap(kmap)
    db.set_keymap_path(path, str(kmap))
    print(f"Using {kmap} for key-mappings.")
    return 0


def cmd_kmap_clear(ns: argparse.Namespace) -> int:
    path = _open_db(ns)
    db.set_keymap_path(path, "")
    print("Key-bindings reset to default.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="listkeeper",
        description="listkeeper: named todo lists with a vim-style terminal editor.",
    )
    p.add_argument(
        "--db",
        help="Path to the database (default: ~/.listkeeper/listkeeper.db or LISTKEEPER_DB env var)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("new", help="Create new lists and switch to the last one.")
    s.add_argument("names", nargs="+", help="List names.")
    s.set_defaults(func=cmd_new)

    s = sub.add_parser("list", help="Show all lists with their task counts.")
    s.set_defaults(func=cmd_list)

    s = sub.add_parser("show", help="Print the tasks of a list (default: current list).")
    s.add_argument("name", nargs="?", help="List name.")
    s.set_defaults(func=cmd_show)

    s = sub.add_parser("switch", help="Make a list the current list.")
    s.add_argument("name", help="List name.")
    s.set_defaults(func=cmd_switch)

    s = sub.add_parser("rename", help="Rename a list.")
    s.add_argument("old", help="Current name.")
    s.add_argument("new", help="New name.")
    s.set_defaults(func=cmd_rename)

    s = sub.add_parser("delete", help="Delete lists.")
    s.add_argument("names", nargs="*", help="List names.")
    s.add_argument("-a", "--all", action="store_true", help="Delete every list.")
    s.set_defaults(func=cmd_delete)

    s = sub.add_parser("clean", help="Remove completed tasks (default: current list).")
    s.add_argument("names", nargs="*", help="List names.")
    s.add_argument("-a", "--all", action="store_true", help="Clean every list.")
    s.set_defaults(func=cmd_clean)

    s = sub.add_parser("open", help="Edit a list in the terminal editor (default: current list).")
    s.add_argument("name", nargs="?", help="List name.")
    s.set_defaults(func=cmd_open)

    s = sub.add_parser("export", help="Export lists to JSON or YAML (default: current list).")
    s.add_argument("file", help="Output file (.json, .yaml or .yml).")
    s.add_argument("names", nargs="*", help="List names.")
    s.set_defaults(func=cmd_export)

    s = sub.add_parser("import", help="Import lists from JSON or YAML.")
    s.add_argument("file", help="File previously written by export.")
    s.set_defaults(func=cmd_import)

    s = sub.add_parser("merge", help="Add generated lists from a JSON document.")
    s.add_argument("file", help="Generated output, a JSON array of lists.")
    s.set_defaults(func=cmd_merge)

    s = sub.add_parser("kmap", help="Manage editor key-mappings.")
    kmap = s.add_subparsers(dest="kmap_cmd", required=True)
    k = kmap.add_parser("show", help="Show which key-mapping file is in use.")
    k.set_defaults(func=cmd_kmap_show)
    k = kmap.add_parser("set", help="Use a YAML key-mapping file.")
    k.add_argument("file", help="YAML file of mode -> command -> key.")
    k.set_defaults(func=cmd_kmap_set)
    k = kmap.add_parser("clear", help="Revert to default bindings.")
    k.set_defaults(func=cmd_kmap_clear)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    setup_logging(ns.verbose)
    try:
        return int(ns.func(ns))
    except ListkeeperError as e:
        log.debug("command failed", cmd=ns.cmd, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
