"""
Session Clock
Countdown in whole seconds with a single expiry event
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ClockState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    STOPPED = "stopped"


class SessionClock:
    """
    Counts down once per tick from the configured duration
    Expiry and stop are mutually exclusive: whichever happens first wins
    """

    def __init__(self, low_time_threshold: int = 300):
        self.low_time_threshold = low_time_threshold
        self._lock = threading.Lock()
        self._state = ClockState.IDLE
        self._remaining = 0
        self._callbacks: List[Callable[[], None]] = []

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ClockState.RUNNING

    @property
    def remaining(self) -> int:
        return self._remaining

    def on_expire(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def start(self, duration_seconds: int) -> bool:
        """Start the countdown. A clock only ever runs once."""
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")

        with self._lock:
            if self._state != ClockState.IDLE:
                logger.warning(f"Ignoring start on a clock that is {self._state.value}")
                return False
            self._remaining = int(duration_seconds)
            self._state = ClockState.RUNNING

        logger.debug(f"Clock started with {duration_seconds}s")
        return True

    def tick(self) -> int:
        """Advance one second and return the remaining time"""
        expired = False
        with self._lock:
            if self._state != ClockState.RUNNING:
                return self._remaining
            self._remaining = max(self._remaining - 1, 0)
            if self._remaining == 0:
                self._state = ClockState.EXPIRED
                expired = True

        # Callbacks run outside the lock; they usually call stop()
        if expired:
            logger.info("Session clock expired")
            for callback in self._callbacks:
                callback()
        return self._remaining

    def stop(self) -> bool:
        """Stop the countdown. Returns False if it was not running."""
        with self._lock:
            if self._state != ClockState.RUNNING:
                return False
            self._state = ClockState.STOPPED
        logger.debug(f"Clock stopped with {self._remaining}s left")
        return True

    def is_low_time(self) -> bool:
        return self._remaining <= self.low_time_threshold

    def format_remaining(self) -> str:
        return format_seconds(self._remaining)


class ClockTicker(threading.Thread):
    """Background task that ticks a SessionClock once per interval"""

    def __init__(self, clock: SessionClock, interval: float = 1.0, name: Optional[str] = None):
        super().__init__(name=name or "session-clock", daemon=True)
        self.clock = clock
        self.interval = interval
        self._halt = threading.Event()

    def run(self):
        while not self._halt.wait(self.interval):
            if not self.clock.is_running:
                break
            self.clock.tick()

    def cancel(self):
        self._halt.set()


def format_seconds(seconds: int) -> str:
    """Render seconds as MM:SS"""
    seconds = max(int(seconds), 0)
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"
