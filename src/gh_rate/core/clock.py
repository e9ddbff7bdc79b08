"""
Injectable time sources.
[CTX:PBI-1:1-1:CLOCK]

Everything in this package that needs "now" asks a TimeProvider, so tests can
pin the wall clock instead of sleeping.
"""
import threading
import time
from abc import ABC, abstractmethod


class TimeProvider(ABC):
    """Protocol for providing time values, allows injection of fake time in tests."""

    @abstractmethod
    def now(self) -> float:
        """Return current time in seconds since epoch."""
        pass

    def now_epoch_seconds(self) -> int:
        """Return current time truncated to whole epoch seconds."""
        return int(self.now())


class SystemTimeProvider(TimeProvider):
    """Real time provider using system clock."""

    def now(self) -> float:
        return time.time()


class FakeTimeProvider(TimeProvider):
    """Fake time provider for deterministic tests."""

    def __init__(self, initial_time: float = 1000.0):
        self._current_time = initial_time
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._current_time

    def advance(self, seconds: float) -> None:
        """Advance time by given seconds."""
        with self._lock:
            self._current_time += seconds

    def set(self, time: float) -> None:
        """Set absolute time."""
        with self._lock:
            self._current_time = time


_system_time = SystemTimeProvider()


def system_time() -> TimeProvider:
    """Shared system clock used when no provider is injected."""
    return _system_time
