"""Curses front end for ModalEditor: key translation, drawing and the input loop."""
from __future__ import annotations

import curses
import os
from typing import List, NamedTuple, Union

import structlog

from .editor import NEW_TASK, ModalEditor
from .keymap import Mode, NormalAction

log = structlog.get_logger()

SEPARATOR = "=" * 30
CONFIRM_MESSAGE = "You have unsaved changes. Are you sure you want to quit? (y/enter = yes, n = no)"

SPECIAL_KEYS = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_HOME: "home",
    curses.KEY_END: "end",
    curses.KEY_BACKSPACE: "backspace",
    curses.KEY_DC: "delete",
    curses.KEY_ENTER: "enter",
    curses.KEY_RESIZE: "resize",
}

CHAR_KEYS = {
    "\x1b": "esc",
    "\n": "enter",
    "\r": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\b": "backspace",
}


class Line(NamedTuple):
    text: str
    highlight: bool = False


def key_name(key: Union[str, int]) -> str:
    """Translate a curses get_wch() result into a key string used by the keymap."""
    if isinstance(key, int):
        return SPECIAL_KEYS.get(key, f"key-{key}")
    if key in CHAR_KEYS:
        return CHAR_KEYS[key]
    code = ord(key) if len(key) == 1 else -1
    if 1 <= code <= 26:
        return "ctrl+" + chr(ord("a") + code - 1)
    return key


def _task_line(box: str, description: str, pointer: bool) -> str:
    return f"  {'>' if pointer else ' '} [{box}] {description}"


def build_lines(editor: ModalEditor) -> List[Line]:
    task_list = editor.task_list
    if editor.confirming_quit:
        return [Line(""), Line(CONFIRM_MESSAGE)]

    title = f"  {task_list.name}" + (" (*)" if editor.dirty else "")
    lines = [Line(""), Line(title), Line("")]

    inserting = editor.mode is Mode.INSERT
    field_line = Line(_task_line(" ", editor.edit.text.value, True), True)
    if task_list.info.num_tasks == 0 and not inserting:
        new_key = editor.keymap.key_for(Mode.NORMAL, NormalAction.NEW_TASK)
        lines.append(Line(f'  {task_list.name} has no tasks. Press "{new_key}" to add one.'))
        return lines

    lo, hi = editor.selection() if editor.mode is Mode.VISUAL else (-1, -1)
    pending, done = task_list.split_by_completion()
    new_slot = min(editor.edit.location, len(pending)) if inserting and editor.edit.task_id == NEW_TASK else -1

    for i, task in enumerate(pending + done):
        if i == len(pending) and done:
            if new_slot == i:
                lines.append(field_line)
            lines.extend([Line(""), Line(f"    {SEPARATOR}"), Line("")])
        elif i == new_slot:
            lines.append(field_line)
        if inserting and task.id == editor.edit.task_id:
            lines.append(Line(_task_line("x" if task.done else " ", editor.edit.text.value, True), True))
            continue
        pointer = not inserting and i == editor.cursor.row
        lines.append(Line(_task_line("x" if task.done else " ", task.description, pointer), lo <= i <= hi))
    if new_slot == len(pending) and not done:
        lines.append(field_line)
    return lines


def help_line(editor: ModalEditor) -> str:
    mode = editor.mode
    return "  ".join(f"{key} {text}" for key, text in editor.keymap.help_entries(mode))


def draw(stdscr: "curses.window", editor: ModalEditor) -> None:
    stdscr.erase()
    height, width = stdscr.getmaxyx()
    lines = build_lines(editor)
    body_rows = max(0, height - 2)
    for y, line in enumerate(lines[:body_rows]):
        attr = curses.A_REVERSE if line.highlight else curses.A_NORMAL
        stdscr.addnstr(y, 0, line.text, max(0, width - 1), attr)
    if not editor.confirming_quit and height > 1:
        stdscr.addnstr(height - 1, 0, help_line(editor), max(0, width - 1), curses.A_DIM)
    stdscr.refresh()


def run(stdscr: "curses.window", editor: ModalEditor) -> None:
    curses.raw()
    curses.curs_set(0)
    stdscr.keypad(True)
    while not editor.quit:
        draw(stdscr, editor)
        try:
            key = key_name(stdscr.get_wch())
        except curses.error:
            continue
        if key == "resize":
            continue
        editor.handle_key(key)


def open_session(editor: ModalEditor) -> None:
    """Run the editor full screen until it quits. Errors from a write propagate."""
    os.environ.setdefault("ESCDELAY", "25")
    log.info("session started", list=editor.task_list.name)
    curses.wrapper(run, editor)
    log.info("session ended", list=editor.task_list.name, unsaved=editor.dirty)
