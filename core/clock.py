import time
from typing import Protocol


ONE_DAY_MS = 24 * 60 * 60 * 1000


class Clock(Protocol):
    """Source of the current time in epoch milliseconds."""

    def now(self) -> int:
        ...


class SystemClock:
    def now(self) -> int:
        return time.time_ns() // 1_000_000


class FixedClock:
    """Clock that only moves when told to. Used by tests."""

    def __init__(self, now: int):
        self._now = now

    def now(self) -> int:
        return self._now

    def set(self, now: int) -> None:
        self._now = now

    def advance(self, days: float = 0, ms: int = 0) -> None:
        self._now += round(days * ONE_DAY_MS) + ms
