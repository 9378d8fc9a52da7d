"""
Tests for roster persistence and the roster editor operations.
"""

import pytest
import sys
import json
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from daily_timer.data_manager import (
    DataManager,
    DataValidationError,
    DEFAULT_PARTICIPANT_NAMES,
    DEFAULT_TIMER_SECONDS,
)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "daily_timer.json"


@pytest.fixture
def data_manager(data_file):
    """DataManager over a four-person roster A, B, C, D."""
    data_file.write_text(json.dumps({
        "settings": {"timerSeconds": 60},
        "userList": [
            {"id": name.lower(), "name": name, "isSelected": True, "isAdmin": False}
            for name in ["A", "B", "C", "D"]
        ]
    }))
    return DataManager(str(data_file))


def names(dm):
    return [p.name for p in dm.get_participants()]


def test_missing_file_gives_default_roster(data_file):
    dm = DataManager(str(data_file))
    participants = dm.get_participants()

    assert [p.name for p in participants] == list(DEFAULT_PARTICIPANT_NAMES)
    assert all(p.selected and not p.is_admin for p in participants)
    assert len({p.id for p in participants}) == 3
    assert dm.get_timer_seconds() == DEFAULT_TIMER_SECONDS


def test_corrupt_file_falls_back_to_default(data_file):
    """
    Why this is important: a damaged roster file must never stop the app
    from starting; it is treated exactly like a missing file.
    """
    data_file.write_text("{not json")
    dm = DataManager(str(data_file))
    assert names(dm) == list(DEFAULT_PARTICIPANT_NAMES)


@pytest.mark.parametrize(
    "user_list",
    [
        "not a list",
        [{"id": "x"}],
        [{"id": "x", "name": 7}],
        [42],
    ],
)
def test_undecodable_roster_falls_back_but_keeps_settings(data_file, user_list):
    data_file.write_text(json.dumps({"settings": {"timerSeconds": 45}, "userList": user_list}))
    dm = DataManager(str(data_file))
    assert names(dm) == list(DEFAULT_PARTICIPANT_NAMES)
    assert dm.get_timer_seconds() == 45


def test_save_and_reload_preserves_roster(data_manager, data_file):
    data_manager.set_admin("b", True)
    data_manager.set_selected("c", False)

    reloaded = DataManager(str(data_file))
    participants = reloaded.get_participants()
    assert [p.id for p in participants] == ["a", "b", "c", "d"]
    assert participants[1].is_admin
    assert not participants[2].selected
    assert reloaded.get_timer_seconds() == 60

    saved = json.loads(data_file.read_text())
    assert saved["userList"][1] == {"id": "b", "name": "B", "isSelected": True, "isAdmin": True}


def test_legacy_selected_key_and_missing_id(data_file):
    data_file.write_text(json.dumps({"userList": [
        {"name": "Old", "selected": False},
        {"id": "dup", "name": "One"},
        {"id": "dup", "name": "Two"},
    ]}))
    dm = DataManager(str(data_file))
    participants = dm.get_participants()

    assert not participants[0].selected
    assert participants[0].id
    assert len({p.id for p in participants}) == 3
    assert dm.get_timer_seconds() == DEFAULT_TIMER_SECONDS


def test_add_participant_defaults(data_manager, data_file):
    new = data_manager.add_participant()
    assert new.name == "New User"
    assert new.selected and not new.is_admin
    assert names(data_manager)[-1] == "New User"

    reloaded = DataManager(str(data_file))
    assert reloaded.get_participant(new.id) is not None


def test_rename_keeps_id(data_manager):
    assert data_manager.rename_participant("a", "Alice")
    renamed = data_manager.get_participant("a")
    assert renamed.name == "Alice"
    assert not data_manager.rename_participant("missing", "X")


def test_toggle_admin(data_manager):
    assert data_manager.toggle_admin("d")
    assert data_manager.get_participant("d").is_admin
    assert data_manager.toggle_admin("d")
    assert not data_manager.get_participant("d").is_admin
    assert not data_manager.toggle_admin("missing")


def test_delete_by_indices(data_manager):
    removed = data_manager.delete_participants({0, 2, 99})
    assert removed == 2
    assert names(data_manager) == ["B", "D"]
    assert data_manager.delete_participants([]) == 0


@pytest.mark.parametrize(
    "indices, destination, expected",
    [
        ([0], 2, ["B", "A", "C", "D"]),
        ([3], 0, ["D", "A", "B", "C"]),
        ([0, 2], 4, ["B", "D", "A", "C"]),
        ([1], 3, ["A", "C", "B", "D"]),
        ([2], 1, ["A", "C", "B", "D"]),
        ([1, 3], 0, ["B", "D", "A", "C"]),
    ],
)
def test_move_participants(data_manager, indices, destination, expected):
    assert data_manager.move_participants(indices, destination)
    assert names(data_manager) == expected


def test_move_to_same_place_is_noop(data_manager):
    assert not data_manager.move_participants([1], 1)
    assert not data_manager.move_participants([1], 2)
    assert names(data_manager) == ["A", "B", "C", "D"]


def test_copies_do_not_mutate_roster(data_manager):
    copy = data_manager.get_participants()[0]
    copy.name = "Changed"
    assert names(data_manager)[0] == "A"


def test_timer_seconds_validation(data_manager, data_file):
    data_manager.set_timer_seconds(120)
    assert DataManager(str(data_file)).get_timer_seconds() == 120

    for bad in [-1, "90", 1.5]:
        with pytest.raises(DataValidationError):
            data_manager.set_timer_seconds(bad)
    assert data_manager.get_timer_seconds() == 120


def test_write_failure_is_swallowed(tmp_path):
    """Saving into a path that cannot exist fails quietly."""
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    dm = DataManager(str(blocker / "daily_timer.json"))

    participant = dm.add_participant("Eve")
    assert dm.get_participant(participant.id).name == "Eve"
    assert dm.save_data() is False


def test_recovery_from_backup(data_manager, data_file):
    data_manager.add_participant("Eve")
    data_manager.set_timer_seconds(30)
    assert data_file.with_suffix(".bak").exists()

    data_file.write_text("garbage")
    recovered = DataManager(str(data_file))
    # The backup holds the state before the last save
    assert "Eve" in names(recovered)
    assert recovered.get_timer_seconds() == 60


def test_subscribers_notified_on_mutation(data_manager):
    calls = []
    data_manager.subscribe(lambda: calls.append(1))

    data_manager.add_participant()
    data_manager.set_selected("a", False)
    data_manager.set_timer_seconds(15)
    assert len(calls) == 3

    data_manager.unsubscribe(data_manager._subscribers[0])
    data_manager.toggle_admin("a")
    assert len(calls) == 3


def test_undecodable_roster_recovers_from_backup(data_manager, data_file):
    """
    Why this is important: a roster that parses as JSON but holds a bad
    record must not be replaced by the defaults while a good backup exists,
    otherwise the next save rotates the broken file over the only good copy.
    """
    data_manager.add_participant("Eve")
    data_manager.set_timer_seconds(30)
    backup_file = data_file.with_suffix(".bak")

    broken = json.loads(data_file.read_text())
    broken["userList"][0]["name"] = 7
    data_file.write_text(json.dumps(broken))

    recovered = DataManager(str(data_file))
    assert names(recovered) == ["A", "B", "C", "D", "Eve"]
    assert recovered.get_timer_seconds() == 60
    assert not backup_file.exists()

    # A later save must not put the broken roster into the backup
    recovered.set_selected("a", False)
    backup = json.loads(backup_file.read_text())
    assert all(isinstance(record["name"], str) for record in backup["userList"])


def test_undecodable_roster_and_backup_keep_main_settings(data_file):
    data_file.write_text(json.dumps({"settings": {"timerSeconds": 20}, "userList": [{"name": None}]}))
    data_file.with_suffix(".bak").write_text("garbage")

    dm = DataManager(str(data_file))
    assert names(dm) == list(DEFAULT_PARTICIPANT_NAMES)
    assert dm.get_timer_seconds() == 20


@pytest.mark.parametrize(
    "record",
    [
        {"id": "x", "name": "X", "isSelected": "false"},
        {"id": "x", "name": "X", "isSelected": 0},
        {"id": "x", "name": "X", "isAdmin": "0"},
        {"id": "x", "name": "X", "selected": "yes"},
    ],
)
def test_non_boolean_flags_are_undecodable(data_file, record):
    """String or numeric flags are rejected instead of being read as truthy."""
    data_file.write_text(json.dumps({"userList": [record]}))
    dm = DataManager(str(data_file))
    assert names(dm) == list(DEFAULT_PARTICIPANT_NAMES)
