"""Daily streak continuation and streak bonus tiers."""

from collections.abc import Sequence
from datetime import date, timedelta
from typing import NamedTuple

import structlog

logger = structlog.get_logger()


class StreakUpdate(NamedTuple):
    """Outcome of one qualifying event. Only the first event of a day earns a bonus."""

    streak: int
    last_activity_date: date
    bonus: int
    is_first_event_today: bool


class StreakTracker:
    """Decides whether an activity starts, continues or resets a streak.

    The bonus is granted on the first qualifying event of each calendar day
    and escalates with the streak length up to the last tier.

    Args:
        bonus_tiers: Bonus XP for streak lengths 1, 2, ... The last entry
            applies to every longer streak.
    """

    def __init__(self, bonus_tiers: Sequence[int] = (50, 70, 90, 110, 130, 150, 200)):
        if not bonus_tiers:
            raise ValueError("bonus_tiers must not be empty")
        if any(b < 0 for b in bonus_tiers):
            raise ValueError("bonus tiers must be non-negative")
        self.bonus_tiers = tuple(bonus_tiers)

    def bonus_for(self, streak: int) -> int:
        if streak <= 0:
            return 0
        return self.bonus_tiers[min(streak, len(self.bonus_tiers)) - 1]

    def advance(self, streak: int, last_activity_date: date | None, today: date) -> StreakUpdate:
        """Apply one qualifying event on `today`."""
        if last_activity_date is None:
            return StreakUpdate(1, today, self.bonus_for(1), True)

        # An earlier `today` means the clock moved backwards; treat it like
        # another event on the day already counted.
        if today <= last_activity_date:
            return StreakUpdate(streak, last_activity_date, 0, False)

        if today - last_activity_date == timedelta(days=1):
            new_streak = streak + 1
            return StreakUpdate(new_streak, today, self.bonus_for(new_streak), True)

        logger.info(
            "streak_reset",
            previous_streak=streak,
            gap_days=(today - last_activity_date).days,
        )
        return StreakUpdate(1, today, self.bonus_for(1), True)

    @staticmethod
    def current_streak(streak: int, last_activity_date: date | None, today: date) -> int:
        """Streak to display on `today` without recording an event.

        A streak whose last activity is older than yesterday is already
        broken and shows as 0 until the next event resets it to 1.
        """
        if last_activity_date is None:
            return 0
        if (today - last_activity_date).days > 1:
            return 0
        return streak
