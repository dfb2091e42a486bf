"""Clock abstraction for polling loops and backoff waits."""

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of time and sleeping for anything that waits."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time as Unix seconds."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for the given number of seconds."""


class SystemClock(Clock):
    """Clock backed by the real wall clock."""

    def now(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
