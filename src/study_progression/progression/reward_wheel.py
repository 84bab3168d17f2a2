"""Daily spin wheel: weighted XP segments gated by missions and streak."""

from bisect import bisect_right
from collections.abc import Sequence
from datetime import date
from itertools import accumulate

import structlog
from pydantic import BaseModel, ConfigDict, Field

from study_progression.models.profile import Mission, Profile, SpinKind, SpinState
from study_progression.progression.errors import AlreadyClaimedToday, MissionNotComplete
from study_progression.progression.level_curve import LevelCurve
from study_progression.progression.sources import RandomSource

logger = structlog.get_logger()


class WheelSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    xp: int = Field(ge=0)
    weight: float = Field(default=1.0, ge=0)


DEFAULT_SEGMENTS: tuple[WheelSegment, ...] = tuple(
    WheelSegment(xp=xp) for xp in (700, 50, 150, 0, 100, 300, 25, 50)
)


class RewardWheel:
    """Weighted lottery with one claim per spin kind per calendar day.

    Args:
        segments: Wheel segments in display order. A 0 XP segment is a
            valid "try again" outcome.
        login_streak_threshold: Streak needed for the login-streak spin.
        curve: Level curve used to recompute the level after a payout.
    """

    def __init__(
        self,
        segments: Sequence[WheelSegment] = DEFAULT_SEGMENTS,
        login_streak_threshold: int = 3,
        curve: LevelCurve | None = None,
    ):
        if not segments:
            raise ValueError("wheel needs at least one segment")
        self.segments = tuple(segments)
        self._cumulative = list(accumulate(s.weight for s in self.segments))
        if self._cumulative[-1] <= 0:
            raise ValueError("total segment weight must be positive")
        self.login_streak_threshold = login_streak_threshold
        self.curve = curve or LevelCurve()

    @classmethod
    def from_pairs(cls, pairs: Sequence[tuple[int, float]], **kwargs) -> "RewardWheel":
        """Build from (xp, weight) pairs as found in settings."""
        return cls([WheelSegment(xp=xp, weight=weight) for xp, weight in pairs], **kwargs)

    @property
    def values(self) -> list[int]:
        return [s.xp for s in self.segments]

    def draw(self, rng: RandomSource) -> int:
        """Pick a segment index with probability proportional to its weight."""
        point = rng.random() * self._cumulative[-1]
        return min(bisect_right(self._cumulative, point), len(self.segments) - 1)

    @staticmethod
    def ensure_fresh_day(profile: Profile, today: date) -> Profile:
        """Clear every mission and spin flag the first time a new day is seen.

        A `today` earlier than the flags' day keeps them, so a clock moving
        backwards cannot reopen spins already claimed.
        """
        day = profile.spin_state.day
        if day is not None and today <= day:
            return profile
        return profile.model_copy(deep=True, update={"spin_state": SpinState.fresh(today)})

    @staticmethod
    def complete_mission(profile: Profile, mission: Mission) -> Profile:
        state = profile.spin_state
        if state.mission_completed(mission):
            return profile
        missions = {**state.missions_completed_today, mission: True}
        logger.info("mission_completed", user_id=profile.user_id, mission=str(mission))
        return profile.model_copy(
            deep=True,
            update={
                "spin_state": state.model_copy(
                    deep=True, update={"missions_completed_today": missions}
                )
            },
        )

    def is_eligible(self, profile: Profile, kind: SpinKind) -> bool:
        """Whether the precondition for `kind` holds, ignoring claim flags."""
        kind = SpinKind(kind)
        if kind == SpinKind.FREE:
            return True
        if kind == SpinKind.LOGIN_STREAK:
            return profile.streak >= self.login_streak_threshold
        return profile.spin_state.mission_completed(Mission(kind.value))

    def available_spins(self, profile: Profile) -> dict[SpinKind, bool]:
        return {
            kind: self.is_eligible(profile, kind) and not profile.spin_state.spin_claimed(kind)
            for kind in SpinKind
        }

    def claim_spin(
        self, profile: Profile, kind: SpinKind, rng: RandomSource
    ) -> tuple[Profile, int, int]:
        """Claim today's spin of `kind`.

        The profile must already be fresh for the current day.

        Returns:
            (updated profile, awarded XP, segment index)

        Raises:
            AlreadyClaimedToday: The kind was claimed earlier today.
            MissionNotComplete: The kind's precondition does not hold.
        """
        kind = SpinKind(kind)
        state = profile.spin_state
        if state.spin_claimed(kind):
            raise AlreadyClaimedToday(kind)
        if not self.is_eligible(profile, kind):
            raise MissionNotComplete(kind)

        index = self.draw(rng)
        awarded = self.segments[index].xp
        xp = profile.xp + awarded
        claimed = {**state.spins_claimed_today, kind: True}
        logger.info(
            "spin_claimed",
            user_id=profile.user_id,
            kind=str(kind),
            segment=index,
            xp_awarded=awarded,
        )
        updated = profile.model_copy(
            deep=True,
            update={
                "xp": xp,
                "level": self.curve.level_for(xp),
                "spin_state": state.model_copy(deep=True, update={"spins_claimed_today": claimed}),
            }
        )
        return updated, awarded, index
