# ticketflow/server/clock.py
import time
from abc import ABC, abstractmethod
from threading import Lock


class Clock(ABC):
    """Monotonic time source for timers, in seconds."""

    @abstractmethod
    def now(self) -> float: ...


class SystemClock(Clock):
    def now(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """A clock that only moves when told to. Used to drive timers in tests."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._lock = Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def advance_minutes(self, minutes: float) -> float:
        return self.advance(minutes * 60)
