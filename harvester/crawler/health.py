"""Circuit breaker for one extraction backend instance."""

from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    SUCCESS = "success"
    SESSION_ERROR = "session-error"
    OTHER_ERROR = "other-error"


class SessionHealthMonitor:
    """Counts consecutive session failures and latches unhealthy at *threshold*.

    ``SUCCESS`` resets the counter, ``SESSION_ERROR`` increments it and
    ``OTHER_ERROR`` leaves it alone: ordinary extraction errors say nothing
    about whether the backend is alive.  Once unhealthy the monitor never
    recovers; build a new one for the next backend instance.
    """

    def __init__(self, threshold: int = 3) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._consecutive = 0
        self._healthy = True

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive

    def record_outcome(self, outcome: Outcome) -> None:
        if outcome is Outcome.SUCCESS:
            self._consecutive = 0
        elif outcome is Outcome.SESSION_ERROR:
            self._consecutive += 1
            if self._consecutive >= self.threshold:
                self._healthy = False

    def trip(self) -> None:
        """Declare the backend unusable immediately."""
        self._healthy = False

    def is_healthy(self) -> bool:
        return self._healthy
