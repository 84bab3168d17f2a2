"""Progression engine: the mutation entry points for a user's progress.

Each entry point takes a Profile (plus the calendar day and random source
where relevant) and returns a new Profile with the events to show the user.
Inputs are never mutated, so a rejected call leaves the caller's profile
exactly as it was.
"""

from datetime import date

import structlog

from study_progression.config import Settings
from study_progression.models.events import BadgeUnlocked, Event, LevelUp, SpinResult, StreakBonus
from study_progression.models.profile import Mission, Profile, SpinKind
from study_progression.progression.badges import RESERVED_STAT_KEYS, BadgeEngine, BadgeProgress
from study_progression.progression.errors import InvalidProfileState
from study_progression.progression.level_curve import LevelCurve
from study_progression.progression.reward_wheel import RewardWheel
from study_progression.progression.sources import RandomSource
from study_progression.progression.streak import StreakTracker

logger = structlog.get_logger()


class ProgressionEngine:
    """Composes the level curve, streak tracker, badges and spin wheel."""

    def __init__(
        self,
        curve: LevelCurve | None = None,
        streaks: StreakTracker | None = None,
        badges: BadgeEngine | None = None,
        wheel: RewardWheel | None = None,
    ):
        self.curve = curve or LevelCurve()
        self.streaks = streaks or StreakTracker()
        self.badges = badges or BadgeEngine()
        self.wheel = wheel or RewardWheel(curve=self.curve)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProgressionEngine":
        curve = LevelCurve(
            max_level=settings.max_level,
            base_increment=settings.level_base_increment,
            first_growth=settings.level_first_growth,
            growth=settings.level_growth,
        )
        return cls(
            curve=curve,
            streaks=StreakTracker(settings.streak_bonus_tiers),
            badges=BadgeEngine(),
            wheel=RewardWheel.from_pairs(
                settings.wheel_segments,
                login_streak_threshold=settings.login_streak_threshold,
                curve=curve,
            ),
        )

    def normalize(self, profile: Profile) -> Profile:
        """Recompute derived fields instead of trusting the stored ones.

        Raises:
            InvalidProfileState: A counter is negative, so nothing can be
                derived from it.
        """
        if profile.xp < 0 or profile.streak < 0:
            raise InvalidProfileState(
                f"negative counters for {profile.user_id}: xp={profile.xp} streak={profile.streak}"
            )
        negative = sorted(k for k, v in profile.stats.items() if v < 0)
        if negative:
            raise InvalidProfileState(f"negative stats for {profile.user_id}: {negative}")

        updates: dict = {}
        level = self.curve.level_for(profile.xp)
        if level != profile.level:
            updates["level"] = level
        overlap = profile.badges & profile.unclaimed_badges
        if overlap:
            updates["unclaimed_badges"] = profile.unclaimed_badges - overlap
        if profile.equipped_badge is not None and profile.equipped_badge not in profile.badges:
            updates["equipped_badge"] = None
        if not updates:
            return profile

        logger.warning("profile_repaired", user_id=profile.user_id, fields=sorted(updates))
        return profile.model_copy(deep=True, update=updates)

    def _begin(self, profile: Profile, today: date) -> Profile:
        return self.wheel.ensure_fresh_day(self.normalize(profile), today)

    def _unlock_badges(self, profile: Profile, events: list[Event]) -> Profile:
        profile, unlocked = self.badges.unlock(profile)
        events.extend(BadgeUnlocked(key=key) for key in unlocked)
        return profile

    def _level_events(self, previous: Profile, current: Profile, events: list[Event]) -> None:
        if current.level > previous.level:
            logger.info(
                "level_up",
                user_id=current.user_id,
                previous_level=previous.level,
                new_level=current.level,
            )
            events.append(LevelUp(new_level=current.level, previous_level=previous.level))

    def record_correct_answer(
        self, profile: Profile, base_xp: int, today: date
    ) -> tuple[Profile, list[Event]]:
        """Award XP for a correct answer, plus the streak bonus if due today."""
        if base_xp < 0:
            raise ValueError(f"base_xp must be non-negative, got {base_xp}")
        profile = self._begin(profile, today)
        events: list[Event] = []

        update = self.streaks.advance(profile.streak, profile.last_activity_date, today)
        if update.is_first_event_today:
            logger.info(
                "streak_advanced",
                user_id=profile.user_id,
                streak=update.streak,
                bonus=update.bonus,
            )
        if update.bonus:
            events.append(StreakBonus(amount=update.bonus, streak=update.streak))

        xp = profile.xp + base_xp + update.bonus
        updated = profile.model_copy(
            deep=True,
            update={
                "xp": xp,
                "level": self.curve.level_for(xp),
                "streak": update.streak,
                "last_activity_date": update.last_activity_date,
            }
        )
        self._level_events(profile, updated, events)
        logger.debug(
            "correct_answer_recorded",
            user_id=profile.user_id,
            base_xp=base_xp,
            bonus=update.bonus,
            streak=update.streak,
        )
        return self._unlock_badges(updated, events), events

    def claim_badge(self, profile: Profile, key: str) -> tuple[Profile, list[Event]]:
        """Claim an unlocked badge; claiming can itself unlock collection badges."""
        profile = self.badges.claim(self.normalize(profile), key)
        events: list[Event] = []
        return self._unlock_badges(profile, events), events

    def equip_badge(self, profile: Profile, key: str | None) -> Profile:
        return self.badges.equip(self.normalize(profile), key)

    def claim_spin(
        self, profile: Profile, kind: SpinKind | str, today: date, rng: RandomSource
    ) -> tuple[Profile, list[Event]]:
        kind = SpinKind(kind)
        profile = self._begin(profile, today)
        updated, awarded, index = self.wheel.claim_spin(profile, kind, rng)
        events: list[Event] = [SpinResult(kind=kind, xp_value=awarded, segment_index=index)]
        self._level_events(profile, updated, events)
        return self._unlock_badges(updated, events), events

    def report_stat(
        self, profile: Profile, stat_key: str, delta: int = 1
    ) -> tuple[Profile, list[Event]]:
        """Add `delta` to a named counter and re-check badges."""
        if stat_key in RESERVED_STAT_KEYS:
            raise ValueError(f"{stat_key!r} is derived from the profile and cannot be reported")
        if delta < 0:
            raise ValueError(f"delta must be non-negative, got {delta}")
        profile = self.normalize(profile)
        stats = {**profile.stats, stat_key: profile.stat(stat_key) + delta}
        events: list[Event] = []
        updated = profile.model_copy(deep=True, update={"stats": stats})
        return self._unlock_badges(updated, events), events

    def complete_mission(self, profile: Profile, mission: Mission | str, today: date) -> Profile:
        return self.wheel.complete_mission(self._begin(profile, today), Mission(mission))

    def available_spins(self, profile: Profile, today: date) -> dict[SpinKind, bool]:
        return self.wheel.available_spins(self._begin(profile, today))

    def badge_progress(self, profile: Profile) -> list[BadgeProgress]:
        return self.badges.progress(self.normalize(profile))

    def current_streak(self, profile: Profile, today: date) -> int:
        return self.streaks.current_streak(profile.streak, profile.last_activity_date, today)
