from pathlib import Path

import pytest

from listkeeper.errors import ValidationError
from listkeeper.keymap import (
    InsertAction,
    Mode,
    NormalAction,
    VisualAction,
    default_bindings,
    default_keymap,
    load_keymap,
    resolve_keymap,
)


def test_default_keymap():
    km = default_keymap()
    assert km.action_for(Mode.NORMAL, "j") is NormalAction.DOWN
    assert km.action_for(Mode.NORMAL, " ") is NormalAction.TOGGLE_COMPLETION
    assert km.action_for(Mode.VISUAL, "d") is VisualAction.DELETE
    assert km.action_for(Mode.INSERT, "ctrl+c") is InsertAction.QUIT_NO_WARNING
    assert km.action_for(Mode.INSERT, "k") is None
    assert km.key_for(Mode.NORMAL, NormalAction.NEW_TASK) == "n"


def test_default_bindings_are_fresh():
    bindings = default_bindings()
    bindings["Shared"]["Up"] = "changed"
    assert default_bindings()["Shared"]["Up"] == "k"
    assert default_keymap().action_for(Mode.NORMAL, "k") is NormalAction.UP


def test_shared_override_reaches_every_mode():
    km = resolve_keymap({"Shared": {"Up": "up", "QuitNoWarning": "ctrl+q"}})
    assert km.action_for(Mode.NORMAL, "up") is NormalAction.UP
    assert km.action_for(Mode.VISUAL, "up") is VisualAction.UP
    assert km.action_for(Mode.NORMAL, "k") is None
    assert km.action_for(Mode.INSERT, "ctrl+q") is InsertAction.QUIT_NO_WARNING
    # Insert has no Up command
    assert km.action_for(Mode.INSERT, "up") is None


def test_mode_override_beats_shared():
    km = resolve_keymap({"Shared": {"Up": "up"}, "Normal": {"Up": "ctrl+p"}})
    assert km.action_for(Mode.NORMAL, "ctrl+p") is NormalAction.UP
    assert km.action_for(Mode.NORMAL, "up") is None
    assert km.action_for(Mode.VISUAL, "up") is VisualAction.UP


def test_conflicting_keys_name_both_commands():
    with pytest.raises(ValidationError) as exc:
        resolve_keymap({"Normal": {"Up": "j", "Down": "j"}})
    message = str(exc.value)
    assert "Up" in message and "Down" in message
    assert "'j'" in message
    assert "Normal" in message


def test_override_clashing_with_default_is_a_conflict():
    with pytest.raises(ValidationError):
        resolve_keymap({"Visual": {"Delete": "y"}})


def test_empty_binding_is_rejected():
    with pytest.raises(ValidationError) as exc:
        resolve_keymap({"Insert": {"Save": ""}})
    assert "Save" in str(exc.value)


def test_unknown_commands_and_sections():
    with pytest.raises(ValidationError):
        resolve_keymap({"Normal": {"Fly": "f"}})
    with pytest.raises(ValidationError):
        resolve_keymap({"Shared": {"Write": "s"}})
    with pytest.raises(ValidationError):
        resolve_keymap({"Replace": {"Up": "k"}})


def test_help_entries_follow_bindings():
    km = resolve_keymap({"Normal": {"Write": "s"}})
    entries = km.help_entries(Mode.NORMAL)
    assert ("s", "write") in entries
    assert ("space", "mark done/not done") in entries
    assert ("esc", "discard changes") in default_keymap().help_entries(Mode.INSERT)


def test_load_keymap_without_path():
    assert load_keymap(None) == default_keymap()
    assert load_keymap("") == default_keymap()


def test_load_keymap_missing_file(tmp_path: Path):
    assert load_keymap(tmp_path / "nope.yaml") == default_keymap()


def test_load_keymap_unparsable_file(tmp_path: Path):
    path = tmp_path / "keys.yaml"
    path.write_text("Normal: [unclosed\n", encoding="utf-8")
    assert load_keymap(path) == default_keymap()


def test_load_keymap_undecodable_file(tmp_path: Path):
    path = tmp_path / "keys.yaml"
    path.write_bytes(b"Normal:\n  Up: \xff\xfe\n")
    assert load_keymap(path) == default_keymap()


def test_load_keymap_wrong_shape(tmp_path: Path):
    path = tmp_path / "keys.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert load_keymap(path) == default_keymap()

    path.write_text("Normal:\n  Up: 5\n", encoding="utf-8")
    assert load_keymap(path) == default_keymap()


def test_load_keymap_reads_overrides(tmp_path: Path):
    path = tmp_path / "keys.yaml"
    path.write_text('Shared:\n  ToggleCompletion: "t"\nVisual:\n  NormalMode: "q"\n', encoding="utf-8")

    km = load_keymap(path)
    assert km.action_for(Mode.NORMAL, "t") is NormalAction.TOGGLE_COMPLETION
    assert km.action_for(Mode.VISUAL, "t") is VisualAction.TOGGLE_COMPLETION
    assert km.action_for(Mode.VISUAL, "q") is VisualAction.NORMAL_MODE
    assert km.action_for(Mode.NORMAL, " ") is None


def test_load_keymap_conflict_propagates(tmp_path: Path):
    path = tmp_path / "keys.yaml"
    path.write_text("Normal:\n  Up: j\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_keymap(path)
