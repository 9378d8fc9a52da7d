"""
Session Logic for Daily Timer

Builds the speaking order for a daily and drives the per-participant
countdown. Nothing here touches the UI toolkit: the countdown schedules
its ticks through any object offering tkinter's after/after_cancel pair.
"""

import logging
import math
import random
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Protocol, Tuple, Union

from .data_manager import Participant

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Base exception for session operations"""
    pass


class EmptyQueueError(SessionError):
    """Raised when a session is started with nobody selected"""
    pass


class SessionNotRunningError(SessionError):
    """Raised when advancing a sequencer that has no session"""
    pass


class TickScheduler(Protocol):
    """The subset of a tkinter widget used to schedule countdown ticks"""

    def after(self, ms: int, func: Callable[[], None]) -> Any: ...

    def after_cancel(self, id: Any) -> None: ...


class TimerPhase(Enum):
    IDLE = "idle"
    COUNTING = "counting"
    EXPIRED = "expired"
    STOPPED = "stopped"


class SessionState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    ENDED = "ended"


class SessionEnded:
    """Terminal marker returned by advance() once the queue is exhausted"""

    def __repr__(self):
        return "SESSION_ENDED"


SESSION_ENDED = SessionEnded()


def _check_duration(duration_seconds) -> int:
    if not isinstance(duration_seconds, int) or isinstance(duration_seconds, bool) or duration_seconds < 0:
        raise ValueError(f"Duration must be a non-negative integer, got {duration_seconds!r}")
    return duration_seconds


def estimate_total_minutes(participant_count: int, timer_seconds: int) -> int:
    """Total meeting length in whole minutes, rounded up"""
    return math.ceil(participant_count * timer_seconds / 60)


def build_queue(participants: Iterable[Participant], rng: Optional[random.Random] = None) -> List[Participant]:
    """
    Speaking order for a session: selected non-admins in random order,
    then selected admins in roster order. Entries are copies so later
    roster edits do not leak into a running session.
    """
    rng = rng or random.Random()
    selected = [replace(p) for p in participants if p.selected]
    non_admins = [p for p in selected if not p.is_admin]
    admins = [p for p in selected if p.is_admin]
    rng.shuffle(non_admins)
    return non_admins + admins


class CountdownTimer:
    """
    Per-participant countdown ticking once per interval.

    Every start() and stop() bumps a generation counter; each scheduled
    tick carries the generation it was scheduled for and is ignored if
    that generation is no longer current.
    """

    def __init__(self, scheduler: TickScheduler, interval_ms: int = 1000,
                 on_change: Optional[Callable[['CountdownTimer'], None]] = None):
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.on_change = on_change
        self.remaining = 0
        self.running = False
        self.phase = TimerPhase.IDLE
        self._generation = 0
        self._pending = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def expired(self) -> bool:
        return self.phase == TimerPhase.EXPIRED

    def start(self, duration_seconds: int):
        """(Re)start the countdown, replacing any countdown in progress"""
        duration_seconds = _check_duration(duration_seconds)
        self._cancel_pending()
        self._generation += 1
        self.remaining = duration_seconds

        if duration_seconds == 0:
            self.running = False
            self.phase = TimerPhase.EXPIRED
        else:
            self.running = True
            self.phase = TimerPhase.COUNTING
            self._schedule_tick()
        self._notify()

    def stop(self):
        """Cancel any pending tick. Safe to call repeatedly."""
        was_running = self.running
        self._cancel_pending()
        self._generation += 1
        self.running = False
        if was_running:
            self.phase = TimerPhase.STOPPED
            self._notify()

    def _schedule_tick(self):
        generation = self._generation
        self._pending = self.scheduler.after(self.interval_ms, lambda: self._tick(generation))

    def _cancel_pending(self):
        if self._pending is not None:
            self.scheduler.after_cancel(self._pending)
            self._pending = None

    def _tick(self, generation: int):
        if generation != self._generation or not self.running:
            logger.debug(f"Dropping stale tick (generation {generation}, current {self._generation})")
            return

        self._pending = None
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self.running = False
            self.phase = TimerPhase.EXPIRED
            logger.info("Countdown expired")
        else:
            self._schedule_tick()
        self._notify()

    def _notify(self):
        if self.on_change:
            self.on_change(self)


class SessionSequencer:
    """Runs one daily: frozen queue, forward-only cursor, one countdown"""

    def __init__(self, timer: CountdownTimer, rng: Optional[random.Random] = None):
        self.timer = timer
        self.rng = rng or random.Random()
        self.state = SessionState.IDLE
        self.duration_seconds = 0
        self._queue: Tuple[Participant, ...] = ()
        self._cursor = 0

    @property
    def queue(self) -> Tuple[Participant, ...]:
        return self._queue

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Optional[Participant]:
        if self.state != SessionState.RUNNING:
            return None
        return self._queue[self._cursor]

    @property
    def position(self) -> int:
        """1-based position of the current participant, 0 when nobody is current"""
        return self._cursor + 1 if self.state == SessionState.RUNNING else 0

    @property
    def remaining_count(self) -> int:
        """Participants still to speak after the current one"""
        if self.state != SessionState.RUNNING:
            return 0
        return len(self._queue) - self._cursor - 1

    def start_session(self, participants: Iterable[Participant], duration_seconds: int) -> Tuple[Participant, ...]:
        """Build a fresh queue from the selected participants and start the first countdown"""
        duration_seconds = _check_duration(duration_seconds)
        queue = build_queue(participants, self.rng)
        if not queue:
            raise EmptyQueueError("No participants selected")

        self.timer.stop()
        self._queue = tuple(queue)
        self._cursor = 0
        self.duration_seconds = duration_seconds
        self.state = SessionState.RUNNING
        logger.info(f"Session started with {len(self._queue)} participants: "
                    f"{', '.join(p.name for p in self._queue)}")

        self.timer.start(duration_seconds)
        return self._queue

    def advance(self) -> Union[Participant, SessionEnded]:
        """Stop the current countdown and move to the next participant"""
        if self.state == SessionState.IDLE:
            raise SessionNotRunningError("No session in progress")

        self.timer.stop()
        if self.state == SessionState.ENDED:
            return SESSION_ENDED

        if self._cursor + 1 < len(self._queue):
            self._cursor += 1
            participant = self._queue[self._cursor]
            logger.info(f"Next participant: {participant.name} ({self.position}/{len(self._queue)})")
            self.timer.start(self.duration_seconds)
            return participant

        self._cursor = len(self._queue)
        self.state = SessionState.ENDED
        logger.info("Session ended")
        return SESSION_ENDED

    def reset(self):
        """Abandon any session and return to idle"""
        self.timer.stop()
        self._queue = ()
        self._cursor = 0
        self.state = SessionState.IDLE
