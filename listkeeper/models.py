from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from .errors import (
    AlreadyExistsError,
    ExhaustedError,
    InvariantError,
    NotFoundError,
    ValidationError,
)

MAX_ID_ATTEMPTS = 100
MAX_TASK_ID = 2**63 - 1


@dataclass
class Task:
    id: int
    description: str
    done: bool = False


@dataclass
class ListInfo:
    name: str
    num_done: int = 0
    num_pending: int = 0
    num_tasks: int = 0


@dataclass
class TaskList:
    """
    One named list.

    `order` is the manual ordering and ignores completion. The editor shows
    the *display* ordering instead: pending tasks first, then done tasks,
    each group kept in `order` order. Editor-facing helpers take display
    indices and translate them to raw indices in `order`.
    """

    info: ListInfo
    order: List[int] = field(default_factory=list)
    tasks: Dict[int, Task] = field(default_factory=dict)
    used_ids: Set[int] = field(default_factory=set)
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    @classmethod
    def empty(cls, name: str) -> "TaskList":
        return cls(info=ListInfo(name=name))

    @property
    def name(self) -> str:
        return self.info.name

    def __len__(self) -> int:
        return len(self.order)

    # -------------------- id allocation --------------------

    def _allocate_id(self) -> int:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self.rng.randint(0, MAX_TASK_ID)
            if candidate not in self.used_ids:
                self.used_ids.add(candidate)
                return candidate
        raise ExhaustedError(
            f"could not allocate a unique task id for list {self.name!r} "
            f"after {MAX_ID_ATTEMPTS} attempts; ids are not being released"
        )

    def new_task(self, description: str, done: bool = False) -> Task:
        """Reserve a fresh id and build a task. The task is not attached yet."""
        return Task(id=self._allocate_id(), description=description, done=done)

    def release(self, task: Task) -> None:
        """Give back the id of a task from new_task() that was never attached."""
        if task.id not in self.tasks:
            self.used_ids.discard(task.id)

    # -------------------- mutation --------------------

    def _count(self, task: Task, delta: int) -> None:
        self.info.num_tasks += delta
        if task.done:
            self.info.num_done += delta
        else:
            self.info.num_pending += delta

    def add_task(self, task: Task) -> None:
        if task.id in self.tasks:
            raise AlreadyExistsError(f"task id {task.id} already exists in list {self.name!r}")
        self.order.append(task.id)
        self.tasks[task.id] = task
        self.used_ids.add(task.id)
        self._count(task, +1)
        self.check_invariants()

    def add_new_task(self, description: str, done: bool = False) -> Task:
        task = self.new_task(description, done)
        self.add_task(task)
        return task

    def insert(self, task: Task, raw_index: int) -> None:
        if not 0 <= raw_index <= len(self.order):
            raise ValidationError(
                f"insert position {raw_index} out of range for list {self.name!r} "
                f"with {len(self.order)} tasks"
            )
        if task.id in self.tasks:
            raise ValidationError(f"task id {task.id} already exists in list {self.name!r}")
        self.order.insert(raw_index, task.id)
        self.tasks[task.id] = task
        self.used_ids.add(task.id)
        self._count(task, +1)
        self.check_invariants()

    def _get(self, task_id: int) -> Task:
        try:
            return self.tasks[task_id]
        except KeyError:
            raise NotFoundError(f"task id {task_id} not found in list {self.name!r}") from None

    def remove_task(self, task_id: int) -> Task:
        task = self._get(task_id)
        del self.tasks[task_id]
        self.order.remove(task_id)
        self.used_ids.discard(task_id)
        self._count(task, -1)
        self.check_invariants()
        return task

    def edit_description(self, task_id: int, description: str) -> None:
        self._get(task_id).description = description

    def toggle_completion(self, task_id: int) -> Task:
        task = self._get(task_id)
        task.done = not task.done
        step = 1 if task.done else -1
        self.info.num_done += step
        self.info.num_pending -= step
        self.check_invariants()
        return task

    def remove_done(self) -> int:
        done_ids = {tid for tid in self.order if self.tasks[tid].done}
        if not done_ids:
            return 0
        self.order = [tid for tid in self.order if tid not in done_ids]
        for tid in done_ids:
            del self.tasks[tid]
        self.used_ids -= done_ids
        self.recount()
        self.check_invariants()
        return len(done_ids)

    # -------------------- counters / invariants --------------------

    def recount(self) -> ListInfo:
        """Recompute the cached counters from the tasks themselves."""
        done = sum(1 for t in self.tasks.values() if t.done)
        self.info.num_tasks = len(self.tasks)
        self.info.num_done = done
        self.info.num_pending = len(self.tasks) - done
        return self.info

    def check_invariants(self) -> None:
        if len(self.order) != len(set(self.order)):
            raise InvariantError(f"list {self.name!r} has duplicate ids in its order")
        if set(self.order) != set(self.tasks):
            raise InvariantError(f"list {self.name!r} order does not match its tasks")
        if self.used_ids != set(self.tasks):
            raise InvariantError(f"list {self.name!r} used ids do not match its tasks")
        info = self.info
        if info.num_tasks != len(self.tasks) or info.num_done + info.num_pending != info.num_tasks:
            raise InvariantError(f"list {self.name!r} counters are out of sync: {info}")
        if info.num_done != sum(1 for t in self.tasks.values() if t.done):
            raise InvariantError(f"list {self.name!r} done counter is wrong: {info}")

    # -------------------- display / raw index mapping --------------------

    def split_by_completion(self) -> Tuple[List[Task], List[Task]]:
        """(pending, done), each in manual order."""
        pending: List[Task] = []
        done: List[Task] = []
        for tid in self.order:
            task = self.tasks[tid]
            (done if task.done else pending).append(task)
        return pending, done

    def display_ids(self) -> List[int]:
        pending, done = self.split_by_completion()
        return [t.id for t in pending] + [t.id for t in done]

    def task_at(self, display_index: int) -> Task:
        ids = self.display_ids()
        if not 0 <= display_index < len(ids):
            raise ValidationError(
                f"display index {display_index} out of range for list {self.name!r} "
                f"with {len(ids)} tasks"
            )
        return self.tasks[ids[display_index]]

    def raw_index(self, display_index: int) -> int:
        return self.order.index(self.task_at(display_index).id)

    def display_index(self, task_id: int) -> int:
        try:
            return self.display_ids().index(task_id)
        except ValueError:
            raise NotFoundError(f"task id {task_id} not found in list {self.name!r}") from None

    def ids_in_range(self, start: int, end: int) -> List[int]:
        """Task ids for the inclusive display range, in either direction."""
        lo, hi = min(start, end), max(start, end)
        ids = self.display_ids()
        if lo < 0 or hi >= len(ids):
            raise ValidationError(
                f"display range [{lo}, {hi}] out of range for list {self.name!r} "
                f"with {len(ids)} tasks"
            )
        return ids[lo : hi + 1]

    def pending_insert_index(self, display_index: int) -> int:
        """
        Raw index at which a new pending task shows up at `display_index`.

        Pending tasks always sort before done ones, so a slot past the pending
        partition lands right after the last pending task.
        """
        pending, _ = self.split_by_completion()
        if display_index < 0:
            raise ValidationError(f"display index {display_index} out of range for list {self.name!r}")
        if display_index < len(pending):
            return self.order.index(pending[display_index].id)
        if pending:
            return self.order.index(pending[-1].id) + 1
        return 0
