"""User progress record: XP, level, streak, badges and daily spin flags."""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_serializer


class SpinKind(StrEnum):
    """Spin wheel claim kinds, each claimable once per calendar day."""

    FREE = "free"
    PRACTICE_SESSION = "practice_session"
    MOCK_TEST = "mock_test"
    LOGIN_STREAK = "login_streak"


class Mission(StrEnum):
    """Daily missions reported by the surrounding app."""

    PRACTICE_SESSION = "practice_session"
    MOCK_TEST = "mock_test"

    @property
    def spin_kind(self) -> SpinKind:
        return SpinKind(self.value)


def _cleared_missions() -> dict[Mission, bool]:
    return {mission: False for mission in Mission}


def _cleared_spins() -> dict[SpinKind, bool]:
    return {kind: False for kind in SpinKind}


class SpinState(BaseModel):
    """Mission and spin flags for a single calendar day."""

    model_config = ConfigDict(frozen=True)

    day: date | None = None
    missions_completed_today: dict[Mission, bool] = Field(default_factory=_cleared_missions)
    spins_claimed_today: dict[SpinKind, bool] = Field(default_factory=_cleared_spins)

    @classmethod
    def fresh(cls, day: date) -> "SpinState":
        """All flags cleared for `day`."""
        return cls(day=day)

    def mission_completed(self, mission: Mission) -> bool:
        return self.missions_completed_today.get(mission, False)

    def spin_claimed(self, kind: SpinKind) -> bool:
        return self.spins_claimed_today.get(kind, False)


class Profile(BaseModel):
    """Progress record for one user.

    Instances are immutable. The progression engine returns a new Profile for
    every mutation; callers persist the returned value as a whole.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    streak: int = Field(default=0, ge=0)
    last_activity_date: date | None = None
    badges: frozenset[str] = frozenset()
    unclaimed_badges: frozenset[str] = frozenset()
    equipped_badge: str | None = None
    stats: dict[str, NonNegativeInt] = Field(default_factory=dict)
    spin_state: SpinState = Field(default_factory=SpinState)

    @field_serializer("badges", "unclaimed_badges")
    def _serialize_badge_set(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    @classmethod
    def new(cls, user_id: str) -> "Profile":
        """Signup record: no XP, level 1, no streak, no badges."""
        return cls(user_id=user_id)

    def stat(self, key: str) -> int:
        return self.stats.get(key, 0)
