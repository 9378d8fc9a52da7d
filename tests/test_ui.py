"""
Tests for the customtkinter window wiring.

These need a display; they are skipped when Tk cannot open one.
"""

import pytest
import sys
import json
import random
import tkinter
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

ctk = pytest.importorskip("customtkinter")

from daily_timer.controller import Screen
from daily_timer.data_manager import DataManager
from daily_timer.session_logic import SessionState


@pytest.fixture
def window(tmp_path):
    data_file = tmp_path / "daily_timer.json"
    data_file.write_text(json.dumps({
        "settings": {"timerSeconds": 12},
        "userList": [
            {"id": "alice", "name": "Alice", "isSelected": True, "isAdmin": False},
            {"id": "bob", "name": "Bob", "isSelected": True, "isAdmin": True},
        ]
    }))
    try:
        from daily_timer.ui import MainWindow
        win = MainWindow(DataManager(str(data_file)), rng=random.Random(3))
    except tkinter.TclError as e:
        pytest.skip(f"No display available: {e}")
    yield win
    win.sequencer.reset()
    win.destroy()


def test_countdown_display_follows_window_timer(window):
    """The sequencer's countdown is the one wired to the session display."""
    assert window.sequencer.timer is window.timer
    assert window.timer.on_change == window._on_timer_change

    assert window.controller.start_session()
    assert window.session_frame.countdown_label.cget("text") == "12"

    window.timer._tick(window.timer.generation)
    assert window.session_frame.countdown_label.cget("text") == "11"


def test_end_screen_returns_to_setup(window):
    window.controller.start_session()
    window.controller.next_participant()
    window.controller.next_participant()
    assert window.controller.session_ended

    window.session_frame._back()
    assert window.controller.screen == Screen.SETUP
    assert window.sequencer.state == SessionState.IDLE
