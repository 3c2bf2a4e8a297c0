"""
The modal editing state machine behind the interactive session.

ModalEditor has no terminal dependency. It takes key strings, looks each one
up in the KeyMap for the current mode and applies the resulting action to its
TaskList. tui.py feeds it keys and draws its state.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple

import structlog

from .keymap import InsertAction, KeyMap, Mode, NormalAction, VisualAction
from .models import TaskList

log = structlog.get_logger()

TEXT_LIMIT = 156
NEW_TASK = -1
CONFIRM_YES = ("y", "enter")
CONFIRM_NO = ("n", "esc")


class CopiedTask(NamedTuple):
    description: str
    done: bool


@dataclass
class Cursor:
    row: int = 0
    sel_start: int = -1


@dataclass
class TextField:
    value: str = ""
    pos: int = 0
    limit: int = TEXT_LIMIT

    def reset(self, value: str = "") -> None:
        self.value = value[: self.limit]
        self.pos = len(self.value)

    def type(self, ch: str) -> None:
        if len(self.value) >= self.limit:
            return
        self.value = self.value[: self.pos] + ch + self.value[self.pos :]
        self.pos += 1

    def backspace(self) -> None:
        if self.pos > 0:
            self.value = self.value[: self.pos - 1] + self.value[self.pos :]
            self.pos -= 1

    def delete(self) -> None:
        self.value = self.value[: self.pos] + self.value[self.pos + 1 :]

    def move(self, key: str) -> bool:
        if key == "left":
            self.pos = max(0, self.pos - 1)
        elif key == "right":
            self.pos = min(len(self.value), self.pos + 1)
        elif key == "home":
            self.pos = 0
        elif key == "end":
            self.pos = len(self.value)
        else:
            return False
        return True


@dataclass
class EditInfo:
    task_id: int = NEW_TASK
    location: int = 0
    text: TextField = field(default_factory=TextField)


class ModalEditor:
    """
    Normal / Insert / Visual modes plus the confirm-quit overlay.

    `cursor.row` is a display index (pending tasks first, then done ones) and
    always stays within [0, max(0, num_tasks - 1)]. `save` receives the whole
    TaskList on Write; whatever it raises propagates to the caller.
    """

    def __init__(self, task_list: TaskList, keymap: KeyMap, save: Callable[[TaskList], None]):
        self.task_list = task_list
        self.keymap = keymap
        self.save = save
        self.mode = Mode.NORMAL
        self.cursor = Cursor()
        self.edit = EditInfo()
        self.copy_buffer: List[CopiedTask] = []
        self.dirty = False
        self.confirming_quit = False
        self.quit = False

    # -------------------- queries --------------------

    @property
    def num_tasks(self) -> int:
        return self.task_list.info.num_tasks

    @property
    def num_pending(self) -> int:
        return self.task_list.info.num_pending

    def selection(self) -> tuple[int, int]:
        """Inclusive display range highlighted in Visual mode."""
        return min(self.cursor.sel_start, self.cursor.row), max(self.cursor.sel_start, self.cursor.row)

    def current_task_id(self) -> int:
        return self.task_list.task_at(self.cursor.row).id

    # -------------------- dispatch --------------------

    def handle_key(self, key: str) -> None:
        if self.quit:
            return
        if self.confirming_quit:
            self._confirm_quit(key)
        elif self.mode is Mode.NORMAL:
            self._normal(key)
        elif self.mode is Mode.INSERT:
            self._insert(key)
        else:
            self._visual(key)
        self._clamp()

    def _clamp(self) -> None:
        self.cursor.row = max(0, min(self.cursor.row, self.num_tasks - 1))

    def _confirm_quit(self, key: str) -> None:
        if key in CONFIRM_YES:
            self.confirming_quit = False
            self.quit = True
        elif key in CONFIRM_NO:
            self.confirming_quit = False

    # -------------------- movement --------------------

    def _step(self, delta: int) -> None:
        self.cursor.row = max(0, min(self.cursor.row + delta, self.num_tasks - 1))

    def _jump_up(self) -> None:
        boundary = self.num_pending
        row = self.cursor.row
        if row == boundary:
            self.cursor.row = boundary - 1
        elif row > boundary:
            self.cursor.row = boundary
        else:
            self.cursor.row = 0

    def _jump_down(self) -> None:
        last_pending = self.num_pending - 1
        row = self.cursor.row
        if row < last_pending:
            self.cursor.row = last_pending
        elif row == last_pending:
            self.cursor.row = last_pending + 1
        else:
            self.cursor.row = self.num_tasks - 1

    def _move(self, action) -> bool:
        name = action.value
        if name == "Up":
            self._step(-1)
        elif name == "Down":
            self._step(1)
        elif name == "UpFive":
            self._step(-5)
        elif name == "DownFive":
            self._step(5)
        elif name == "JumpUp":
            self._jump_up()
        elif name == "JumpDown":
            self._jump_down()
        else:
            return False
        self._clamp()
        return True

    # -------------------- normal mode --------------------

    def _normal(self, key: str) -> None:
        action = self.keymap.action_for(Mode.NORMAL, key)
        if action is None or self._move(action):
            return
        if action is NormalAction.QUIT_WITH_WARNING:
            if self.dirty:
                self.confirming_quit = True
            else:
                self.quit = True
        elif action is NormalAction.QUIT_NO_WARNING:
            self.quit = True
        elif action is NormalAction.NEW_TASK:
            self._begin_insert(NEW_TASK, self.num_pending, "")
        elif action is NormalAction.NEW_BEFORE:
            self._begin_insert(NEW_TASK, self.cursor.row, "")
        elif action is NormalAction.NEW_AFTER:
            self._begin_insert(NEW_TASK, self.cursor.row + (1 if self.num_tasks else 0), "")
        elif action is NormalAction.PASTE_AFTER:
            self._paste(before=False)
        elif action is NormalAction.PASTE_BEFORE:
            self._paste(before=True)
        elif action is NormalAction.WRITE:
            self._write()
        elif self.num_tasks == 0:
            # everything below acts on the task under the cursor
            return
        elif action is NormalAction.EDIT_TASK:
            task = self.task_list.task_at(self.cursor.row)
            self._begin_insert(task.id, self.cursor.row, task.description)
        elif action is NormalAction.CLEAR_AND_EDIT:
            self._begin_insert(self.current_task_id(), self.cursor.row, "")
        elif action is NormalAction.DELETE_TASK:
            self._cut([self.current_task_id()])
        elif action is NormalAction.TOGGLE_COMPLETION:
            self._toggle_current()
        elif action is NormalAction.ENABLE_VISUAL_MODE:
            self.cursor.sel_start = self.cursor.row
            self.mode = Mode.VISUAL
        elif action is NormalAction.YANK:
            self._copy([self.current_task_id()])

    def _toggle_current(self) -> None:
        task = self.task_list.toggle_completion(self.current_task_id())
        self.dirty = True
        if task.done:
            self.cursor.row = max(0, min(self.cursor.row, self.num_pending - 1))
        elif self.cursor.row < self.num_tasks - 1:
            self.cursor.row += 1

    def _write(self) -> None:
        try:
            self.save(self.task_list)
        except Exception:
            log.error("write failed", list=self.task_list.name)
            raise
        self.dirty = False
        log.debug("list written", list=self.task_list.name)

    # -------------------- copy / paste --------------------

    def _copy(self, ids: List[int]) -> None:
        tasks = self.task_list.tasks
        self.copy_buffer = [CopiedTask(tasks[i].description, tasks[i].done) for i in ids]

    def _cut(self, ids: List[int]) -> None:
        self._copy(ids)
        for task_id in ids:
            self.task_list.remove_task(task_id)
        self.dirty = True
        self.cursor.row = min(self.num_tasks - 1, self.cursor.row)

    def _paste(self, before: bool) -> None:
        if not self.copy_buffer:
            return
        had_tasks = self.num_tasks > 0
        if had_tasks:
            base = self.task_list.raw_index(self.cursor.row) + (0 if before else 1)
        else:
            base = 0
        for offset, copied in enumerate(self.copy_buffer):
            task = self.task_list.new_task(copied.description, copied.done)
            self.task_list.insert(task, base + offset)
        self.dirty = True
        if had_tasks and not before:
            self.cursor.row += 1

    # -------------------- insert mode --------------------

    def _begin_insert(self, task_id: int, location: int, text: str) -> None:
        self.edit.task_id = task_id
        self.edit.location = location
        self.edit.text.reset(text)
        self.mode = Mode.INSERT

    def _end_insert(self) -> None:
        self.edit.task_id = NEW_TASK
        self.edit.text.reset()
        self.mode = Mode.NORMAL

    def _insert(self, key: str) -> None:
        action = self.keymap.action_for(Mode.INSERT, key)
        text = self.edit.text
        if action is InsertAction.DISCARD:
            self._end_insert()
        elif action is InsertAction.QUIT_NO_WARNING:
            self.quit = True
        elif action is InsertAction.SAVE:
            self._keep_changes()
        elif key == "backspace":
            text.backspace()
        elif key == "delete":
            text.delete()
        elif text.move(key):
            pass
        elif len(key) == 1 and key.isprintable():
            text.type(key)

    def _keep_changes(self) -> None:
        text = self.edit.text.value
        if not text:
            self._end_insert()
            return
        if self.edit.task_id == NEW_TASK:
            task = self.task_list.new_task(text)
            self.task_list.insert(task, self.task_list.pending_insert_index(self.edit.location))
            self.cursor.row = self.task_list.display_index(task.id)
        else:
            self.task_list.edit_description(self.edit.task_id, text)
            self.cursor.row = self.task_list.display_index(self.edit.task_id)
        self.dirty = True
        self._end_insert()

    # -------------------- visual mode --------------------

    def _to_normal(self) -> None:
        self.cursor.sel_start = -1
        self.mode = Mode.NORMAL

    def _visual(self, key: str) -> None:
        action = self.keymap.action_for(Mode.VISUAL, key)
        if action is None or self._move(action):
            return

        if action is VisualAction.NORMAL_MODE:
            self._to_normal()
        elif action is VisualAction.QUIT_NO_WARNING:
            self.quit = True
        elif action is VisualAction.YANK:
            self._copy(self.task_list.ids_in_range(*self.selection()))
            self._to_normal()
        elif action is VisualAction.DELETE:
            self._cut(self.task_list.ids_in_range(*self.selection()))
            self._to_normal()
        elif action is VisualAction.TOGGLE_COMPLETION:
            # ids first: every toggle reshuffles the display order
            ids = self.task_list.ids_in_range(*self.selection())
            for task_id in ids:
                self.task_list.toggle_completion(task_id)
                self.cursor.row -= 1
            self.cursor.row = max(0, self.cursor.row)
            self.dirty = True
            self._to_normal()
