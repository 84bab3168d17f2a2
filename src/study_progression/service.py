"""Application boundary: load a profile, run the engine, save with CAS."""

import random
from collections.abc import Callable
from typing import NamedTuple

import structlog

from study_progression.config import Settings, get_settings
from study_progression.logging_config import configure_logging
from study_progression.models.events import Event
from study_progression.models.profile import Mission, Profile, SpinKind
from study_progression.progression.badges import BadgeProgress
from study_progression.progression.engine import ProgressionEngine
from study_progression.progression.sources import Clock, RandomSource, SystemClock
from study_progression.storage.profile_store import ProfileStore, StaleProfileError

logger = structlog.get_logger()

Transform = Callable[[Profile], tuple[Profile, list[Event]]]


class ProgressResult(NamedTuple):
    profile: Profile
    events: list[Event]


class ProgressionService:
    """Runs engine entry points against stored profiles.

    Each call is a read-modify-write cycle guarded by the store's revision
    check. A conflicting concurrent save causes the whole cycle to be
    retried on fresh data, up to `max_attempts` times.

    Args:
        store: Profile store.
        engine: Progression engine.
        clock: Source of the current calendar day.
        rng: Random source for spin draws.
        max_attempts: Read-modify-write attempts before giving up.
    """

    def __init__(
        self,
        store: ProfileStore,
        engine: ProgressionEngine,
        clock: Clock,
        rng: RandomSource | None = None,
        max_attempts: int = 3,
    ):
        self.store = store
        self.engine = engine
        self.clock = clock
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts

    def _apply(self, user_id: str, action: str, transform: Transform) -> ProgressResult:
        attempt = 0
        while True:
            attempt += 1
            stored = self.store.load(user_id)
            profile, events = transform(stored.profile)
            if profile == stored.profile:
                return ProgressResult(profile, events)
            try:
                self.store.save(profile, stored.revision)
            except StaleProfileError:
                logger.warning(
                    "profile_save_conflict",
                    user_id=user_id,
                    action=action,
                    attempt=attempt,
                )
                if attempt >= self.max_attempts:
                    raise
                continue
            logger.info(
                "progress_updated",
                user_id=user_id,
                action=action,
                xp=profile.xp,
                level=profile.level,
                events=[e.type for e in events],
            )
            return ProgressResult(profile, events)

    def record_correct_answer(self, user_id: str, base_xp: int) -> ProgressResult:
        today = self.clock.today()
        return self._apply(
            user_id,
            "correct_answer",
            lambda p: self.engine.record_correct_answer(p, base_xp, today),
        )

    def claim_badge(self, user_id: str, key: str) -> ProgressResult:
        return self._apply(user_id, "claim_badge", lambda p: self.engine.claim_badge(p, key))

    def equip_badge(self, user_id: str, key: str | None) -> ProgressResult:
        return self._apply(
            user_id, "equip_badge", lambda p: (self.engine.equip_badge(p, key), [])
        )

    def claim_spin(self, user_id: str, kind: SpinKind | str) -> ProgressResult:
        today = self.clock.today()
        return self._apply(
            user_id,
            "claim_spin",
            lambda p: self.engine.claim_spin(p, kind, today, self.rng),
        )

    def report_stat(self, user_id: str, stat_key: str, delta: int = 1) -> ProgressResult:
        return self._apply(
            user_id, "report_stat", lambda p: self.engine.report_stat(p, stat_key, delta)
        )

    def complete_mission(self, user_id: str, mission: Mission | str) -> ProgressResult:
        today = self.clock.today()
        return self._apply(
            user_id,
            "complete_mission",
            lambda p: (self.engine.complete_mission(p, mission, today), []),
        )

    def get_profile(self, user_id: str) -> Profile:
        """Current profile with derived fields recomputed (not saved)."""
        profile = self.engine.normalize(self.store.load(user_id).profile)
        return self.engine.wheel.ensure_fresh_day(profile, self.clock.today())

    def available_spins(self, user_id: str) -> dict[SpinKind, bool]:
        return self.engine.available_spins(self.store.load(user_id).profile, self.clock.today())

    def badge_progress(self, user_id: str) -> list[BadgeProgress]:
        return self.engine.badge_progress(self.store.load(user_id).profile)


def create_service(settings: Settings | None = None) -> ProgressionService:
    """Build a service wired from settings, configuring logging on the way."""
    settings = settings or get_settings()
    configure_logging(json=settings.log_json)
    return ProgressionService(
        store=ProfileStore(settings.profiles_dir),
        engine=ProgressionEngine.from_settings(settings),
        clock=SystemClock(settings.timezone),
        max_attempts=settings.save_max_attempts,
    )
