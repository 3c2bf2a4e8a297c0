"""
Key bindings for the modal editor.

Each mode has a fixed set of commands, and each command is bound to exactly one
key string ("k", "ctrl+c", "esc", "enter", " " ...). Some commands are shared:
their defaults apply to every mode that has them and a `Shared` override
reaches all of those modes at once.

Resolution per mode: built-in defaults, then the user's `Shared` section, then
the user's section for that mode.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type, Union

import structlog
import yaml

from .errors import ValidationError

log = structlog.get_logger()

SHARED = "Shared"


class Mode(str, Enum):
    NORMAL = "Normal"
    INSERT = "Insert"
    VISUAL = "Visual"


class NormalAction(Enum):
    UP = "Up"
    UP_FIVE = "UpFive"
    DOWN = "Down"
    DOWN_FIVE = "DownFive"
    QUIT_WITH_WARNING = "QuitWithWarning"
    QUIT_NO_WARNING = "QuitNoWarning"
    NEW_TASK = "NewTask"
    NEW_BEFORE = "NewBefore"
    NEW_AFTER = "NewAfter"
    EDIT_TASK = "EditTask"
    CLEAR_AND_EDIT = "ClearAndEdit"
    DELETE_TASK = "DeleteTask"
    TOGGLE_COMPLETION = "ToggleCompletion"
    ENABLE_VISUAL_MODE = "EnableVisualMode"
    YANK = "Yank"
    PASTE_AFTER = "PasteAfter"
    PASTE_BEFORE = "PasteBefore"
    WRITE = "Write"
    JUMP_UP = "JumpUp"
    JUMP_DOWN = "JumpDown"


class InsertAction(Enum):
    DISCARD = "Discard"
    QUIT_NO_WARNING = "QuitNoWarning"
    SAVE = "Save"


class VisualAction(Enum):
    UP = "Up"
    UP_FIVE = "UpFive"
    DOWN = "Down"
    DOWN_FIVE = "DownFive"
    NORMAL_MODE = "NormalMode"
    QUIT_NO_WARNING = "QuitNoWarning"
    DELETE = "Delete"
    YANK = "Yank"
    TOGGLE_COMPLETION = "ToggleCompletion"
    JUMP_UP = "JumpUp"
    JUMP_DOWN = "JumpDown"


Action = Union[NormalAction, InsertAction, VisualAction]

ACTIONS: Dict[Mode, Type[Enum]] = {
    Mode.NORMAL: NormalAction,
    Mode.INSERT: InsertAction,
    Mode.VISUAL: VisualAction,
}

SHARED_COMMANDS: Tuple[str, ...] = (
    "Up",
    "UpFive",
    "Down",
    "DownFive",
    "QuitNoWarning",
    "Yank",
    "ToggleCompletion",
    "JumpUp",
    "JumpDown",
)

HELP: Dict[str, str] = {
    "Up": "up",
    "UpFive": "up 5",
    "Down": "down",
    "DownFive": "down 5",
    "QuitWithWarning": "quit",
    "NewTask": "new task",
    "NewBefore": "new task before",
    "NewAfter": "new task after",
    "EditTask": "edit task",
    "ClearAndEdit": "clear and edit",
    "DeleteTask": "cut task",
    "ToggleCompletion": "mark done/not done",
    "EnableVisualMode": "visual mode",
    "Yank": "yank",
    "PasteAfter": "paste",
    "PasteBefore": "paste before",
    "Write": "write",
    "JumpUp": "jump up",
    "JumpDown": "jump down",
    "Discard": "discard changes",
    "Save": "save",
    "NormalMode": "normal mode",
    "Delete": "cut",
}


def default_bindings() -> Dict[str, Dict[str, str]]:
    """Built-in bindings. A fresh dict on every call, safe to mutate."""
    return {
        SHARED: {
            "Up": "k",
            "UpFive": "K",
            "Down": "j",
            "DownFive": "J",
            "QuitNoWarning": "ctrl+c",
            "Yank": "y",
            "ToggleCompletion": " ",
            "JumpUp": "{",
            "JumpDown": "}",
        },
        Mode.NORMAL.value: {
            "QuitWithWarning": "q",
            "NewTask": "n",
            "NewBefore": "O",
            "NewAfter": "o",
            "EditTask": "i",
            "ClearAndEdit": "x",
            "DeleteTask": "d",
            "EnableVisualMode": "v",
            "PasteAfter": "p",
            "PasteBefore": "P",
            "Write": "w",
        },
        Mode.INSERT.value: {
            "Discard": "esc",
            "Save": "enter",
        },
        Mode.VISUAL.value: {
            "NormalMode": "esc",
            "Delete": "d",
        },
    }


def commands_for(mode: Mode) -> Tuple[str, ...]:
    return tuple(a.value for a in ACTIONS[mode])


@dataclass(frozen=True)
class KeyMap:
    """Resolved bindings: per mode, key string -> action."""

    actions: Mapping[Mode, Mapping[str, Action]]

    def action_for(self, mode: Mode, key: str) -> Optional[Action]:
        return self.actions[mode].get(key)

    def key_for(self, mode: Mode, action: Action) -> str:
        for key, bound in self.actions[mode].items():
            if bound is action:
                return key
        raise ValidationError(f"no key bound to {action.value} in {mode.value} mode")

    def help_entries(self, mode: Mode) -> list[tuple[str, str]]:
        """(key label, description) pairs in command order, for the help line."""
        out = []
        for action in ACTIONS[mode]:
            text = HELP.get(action.value)
            if text is None:
                continue
            key = self.key_for(mode, action)
            out.append(("space" if key == " " else key, text))
        return out


def _check_section(section: str, commands: Mapping[str, str]) -> None:
    if section == SHARED:
        known = SHARED_COMMANDS
    else:
        known = commands_for(Mode(section))
    for command in commands:
        if command not in known:
            raise ValidationError(f"unknown command {command!r} in {section} key bindings")


def _merge_mode(mode: Mode, overrides: Mapping[str, Mapping[str, str]]) -> Dict[str, str]:
    defaults = default_bindings()
    required = commands_for(mode)
    merged: Dict[str, str] = {}
    for command in required:
        source = defaults[SHARED] if command in SHARED_COMMANDS else defaults[mode.value]
        merged[command] = source[command]
    for command, key in overrides.get(SHARED, {}).items():
        if command in required:
            merged[command] = key
    merged.update(overrides.get(mode.value, {}))
    return merged


def _validate(mode: Mode, merged: Mapping[str, str]) -> None:
    for command in commands_for(mode):
        if not merged.get(command):
            raise ValidationError(f"missing key binding for command {command} in {mode.value} mode")
    seen: Dict[str, str] = {}
    for command in commands_for(mode):
        key = merged[command]
        if key in seen:
            raise ValidationError(
                f"conflicting key binding in {mode.value} mode: "
                f"{seen[key]} and {command} are both bound to {key!r}"
            )
        seen[key] = command


def resolve_keymap(overrides: Optional[Mapping[str, Mapping[str, str]]] = None) -> KeyMap:
    """
    Build the effective KeyMap from the defaults and an optional override table
    of mode name -> command name -> key string.

    Raises ValidationError for unknown modes or commands, unbound commands and
    two commands sharing a key within one mode.
    """
    overrides = overrides or {}
    for section, commands in overrides.items():
        if section != SHARED and section not in {m.value for m in Mode}:
            raise ValidationError(f"unknown key binding section {section!r}")
        _check_section(section, commands)

    actions: Dict[Mode, Dict[str, Action]] = {}
    for mode in Mode:
        merged = _merge_mode(mode, overrides)
        _validate(mode, merged)
        enum = ACTIONS[mode]
        actions[mode] = {key: enum(command) for command, key in merged.items()}
    return KeyMap(actions=actions)


def default_keymap() -> KeyMap:
    return resolve_keymap(None)


def _parse_overrides(raw: Any) -> Optional[Dict[str, Dict[str, str]]]:
    """Shape-check a parsed document; None means the document is malformed."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        return None
    out: Dict[str, Dict[str, str]] = {}
    for section, commands in raw.items():
        if commands is None:
            continue
        if not isinstance(section, str) or not isinstance(commands, dict):
            return None
        table: Dict[str, str] = {}
        for command, key in commands.items():
            if not isinstance(command, str) or not isinstance(key, str):
                return None
            table[command] = key
        out[section] = table
    return out


def load_keymap(path: Optional[Union[str, Path]]) -> KeyMap:
    """
    Load bindings from a YAML override file.

    A missing, unreadable, unparsable or wrongly shaped file falls back to the
    built-in bindings. Validation errors in a well-formed file propagate.
    """
    if not path:
        return default_keymap()
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.info("keymap file unreadable, using defaults", path=str(path), error=str(e))
        return default_keymap()
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        log.info("keymap file unparsable, using defaults", path=str(path), error=str(e))
        return default_keymap()

    overrides = _parse_overrides(raw)
    if overrides is None:
        log.info("keymap file malformed, using defaults", path=str(path))
        return default_keymap()
    keymap = resolve_keymap(overrides)
    log.debug("keymap loaded", path=str(path))
    return keymap
