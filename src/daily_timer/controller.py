"""
Screen flow for Daily Timer

Keeps track of which screen is shown and wires the roster store to the
session sequencer. The customtkinter window renders whatever this
controller says; the controller itself never imports the toolkit.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Union

from .data_manager import DataManager, DataValidationError, Participant
from .session_logic import (
    EmptyQueueError,
    SessionEnded,
    SessionSequencer,
    SessionState,
    estimate_total_minutes,
)

logger = logging.getLogger(__name__)

SETUP_WINDOW_WIDTH = 400
SETUP_BASE_HEIGHT = 300
SETUP_ROW_HEIGHT = 30
SETUP_MIN_HEIGHT = 400
SETUP_MAX_HEIGHT = 800
SESSION_WINDOW_SIZE = (180, 220)


class Screen(Enum):
    SETUP = "setup"
    SESSION = "session"
    EDITOR = "editor"


def setup_window_height(participant_count: int) -> int:
    """Window height that fits the roster list, clamped to sane bounds"""
    height = SETUP_BASE_HEIGHT + participant_count * SETUP_ROW_HEIGHT
    return max(SETUP_MIN_HEIGHT, min(height, SETUP_MAX_HEIGHT))


class DailyController:
    """Drives transitions between the setup, session and editor screens"""

    def __init__(self, data_manager: DataManager, sequencer: SessionSequencer):
        self.data_manager = data_manager
        self.sequencer = sequencer
        self.screen = Screen.SETUP
        self._listeners: List[Callable[[Screen], None]] = []

    def add_listener(self, callback: Callable[[Screen], None]):
        self._listeners.append(callback)

    def _set_screen(self, screen: Screen):
        if screen != self.screen:
            logger.info(f"Switching screen {self.screen.value} -> {screen.value}")
        self.screen = screen
        for callback in list(self._listeners):
            callback(screen)

    # Derived values for the setup screen
    @property
    def timer_seconds(self) -> int:
        return self.data_manager.get_timer_seconds()

    @property
    def selected_count(self) -> int:
        return len(self.data_manager.get_selected_participants())

    @property
    def total_minutes(self) -> int:
        return estimate_total_minutes(self.selected_count, self.timer_seconds)

    @property
    def session_ended(self) -> bool:
        return self.sequencer.state == SessionState.ENDED

    def setup_window_size(self):
        return SETUP_WINDOW_WIDTH, setup_window_height(len(self.data_manager.participants))

    def update_timeout(self, value: Union[str, int]) -> bool:
        """Validate and persist a new timeout; returns False if the value was rejected"""
        try:
            seconds = int(str(value).strip())
            self.data_manager.set_timer_seconds(seconds)
        except (ValueError, DataValidationError) as e:
            logger.warning(f"Rejected timeout value {value!r}: {e}")
            return False
        return True

    # Transitions
    def start_session(self) -> bool:
        """Start a session from the setup screen; False if nobody is selected"""
        if self.screen != Screen.SETUP:
            return False
        try:
            self.sequencer.start_session(self.data_manager.get_participants(), self.timer_seconds)
        except EmptyQueueError:
            logger.info("Start ignored: no participants selected")
            return False
        self._set_screen(Screen.SESSION)
        return True

    def next_participant(self) -> Union[Participant, SessionEnded, None]:
        if self.screen != Screen.SESSION:
            return None
        result = self.sequencer.advance()
        self._set_screen(Screen.SESSION)
        return result

    def open_editor(self) -> bool:
        if self.screen != Screen.SETUP:
            return False
        self._set_screen(Screen.EDITOR)
        return True

    def close_editor(self) -> bool:
        """Save the roster and go back to setup"""
        if self.screen != Screen.EDITOR:
            return False
        self.data_manager.save_data()
        self._set_screen(Screen.SETUP)
        return True

    def return_to_setup(self):
        self.sequencer.reset()
        self._set_screen(Screen.SETUP)

    def current_participant(self) -> Optional[Participant]:
        return self.sequencer.current
