"""
List documents for import, export and generated batches.

A document is {"title": str, "tasks": [{"description": str, "done": bool}]};
a file holds one document or an array of them.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List

import yaml

from .errors import NotFoundError, StoreError, ValidationError
from .models import TaskList

LIST_FIELDS = {"title", "tasks"}
TASK_FIELDS = {"description", "done"}
SUPPORTED_SUFFIXES = (".json", ".yaml", ".yml")

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n```\s*$", re.DOTALL)


def list_to_dict(task_list: TaskList) -> Dict[str, Any]:
    return {
        "title": task_list.name,
        "tasks": [
            {"description": t.description, "done": t.done}
            for t in (task_list.tasks[tid] for tid in task_list.order)
        ],
    }


def list_from_dict(data: Any) -> TaskList:
    if not isinstance(data, dict):
        raise ValidationError("a list document must be a mapping")
    unknown = set(data) - LIST_FIELDS
    if unknown:
        raise ValidationError(f"unknown list fields: {', '.join(sorted(map(str, unknown)))}")
    title = data.get("title")
    if not isinstance(title, str) or not title:
        raise ValidationError("a list document needs a non-empty 'title'")

    task_list = TaskList.empty(title)
    tasks = data.get("tasks") or []
    if not isinstance(tasks, list):
        raise ValidationError(f"'tasks' of list {title!r} must be an array")
    for raw in tasks:
        if not isinstance(raw, dict):
            raise ValidationError(f"tasks of list {title!r} must be mappings")
        unknown = set(raw) - TASK_FIELDS
        if unknown:
            raise ValidationError(f"unknown task fields in list {title!r}: {', '.join(sorted(map(str, unknown)))}")
        description = raw.get("description")
        done = raw.get("done", False)
        if not isinstance(description, str) or not isinstance(done, bool):
            raise ValidationError(f"bad task in list {title!r}: {raw!r}")
        task_list.add_new_task(description, done)
    return task_list


def lists_from_data(data: Any) -> List[TaskList]:
    items = data if isinstance(data, list) else [data]
    return [list_from_dict(item) for item in items]


def _suffix(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValidationError(
            f'unsupported file format "{path.suffix}"; supported formats are JSON and YAML'
        )
    return suffix


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise NotFoundError(f"could not read {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ValidationError(f"could not decode {path}: {e}") from e


def dump_lists(lists: Iterable[TaskList], path: Path) -> None:
    suffix = _suffix(path)
    docs = [list_to_dict(t) for t in lists]
    if suffix == ".json":
        text = json.dumps(docs, indent=2, ensure_ascii=False)
    else:
        text = yaml.safe_dump(docs, sort_keys=False, allow_unicode=True)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise StoreError(f"could not write {path}: {e}") from e


def load_lists(path: Path) -> List[TaskList]:
    suffix = _suffix(path)
    text = _read(path)
    try:
        data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"could not parse {path}: {e}") from e
    return lists_from_data(data)


def parse_generated(text: str) -> List[TaskList]:
    """
    Turn generated text (a JSON array of list documents, optionally inside a
    Markdown code fence) into TaskLists.
    """
    body = text.strip()
    fenced = _FENCE_RE.match(body)
    if fenced:
        body = fenced.group(1)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationError(f"generated lists are not valid JSON: {e}") from e
    return lists_from_data(data)


def load_generated(path: Path) -> List[TaskList]:
    return parse_generated(_read(path))
