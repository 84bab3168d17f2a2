"""Clock and random-source abstractions passed into the engine."""

from datetime import date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def today(self) -> date: ...


class RandomSource(Protocol):
    """Anything with a uniform `random()` in [0, 1); `random.Random` qualifies."""

    def random(self) -> float: ...


class SystemClock:
    """Wall-clock calendar date in a fixed timezone."""

    def __init__(self, timezone: str = "UTC"):
        self.tz = ZoneInfo(timezone)

    def today(self) -> date:
        return datetime.now(self.tz).date()


class FixedClock:
    """Clock pinned to a given day. Use `advance` to move it."""

    def __init__(self, day: date):
        self.day = day

    def today(self) -> date:
        return self.day

    def advance(self, days: int = 1) -> date:
        self.day = date.fromordinal(self.day.toordinal() + days)
        return self.day
