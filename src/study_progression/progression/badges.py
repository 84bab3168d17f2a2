"""Badge catalog, unlock evaluation, claiming and equipping."""

from collections.abc import Sequence
from enum import StrEnum

import structlog
from pydantic import BaseModel, ConfigDict, Field

from study_progression.models.profile import Profile
from study_progression.progression.errors import InvalidClaim, InvalidEquip

logger = structlog.get_logger()

# Stat keys read from the profile itself rather than from `Profile.stats`.
RESERVED_STAT_KEYS = frozenset({"xp", "streak", "badges"})


class BadgeDefinition(BaseModel):
    """Static badge rule: unlocks once `stat_key` reaches `goal`."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    description: str  # may contain "{goal}"
    goal: int = Field(ge=1)
    stat_key: str

    def describe(self) -> str:
        return self.description.replace("{goal}", str(self.goal))


class BadgeStatus(StrEnum):
    LOCKED = "locked"
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"


class BadgeProgress(BaseModel):
    key: str
    name: str
    description: str
    value: int
    goal: int
    percent: float
    status: BadgeStatus


BADGE_CATALOG: list[BadgeDefinition] = [
    # Stat-based
    BadgeDefinition(key="legend", name="Legend", description="Generate {goal} questions.",
                    goal=100, stat_key="questions_generated"),
    BadgeDefinition(key="the_goat", name="The GOAT", description="Score 100% in {goal} mock test.",
                    goal=1, stat_key="perfect_mock_tests"),
    BadgeDefinition(key="mock_warrior", name="Mock Warrior", description="Complete {goal} mock tests.",
                    goal=10, stat_key="mock_tests_completed"),
    BadgeDefinition(key="note_ninja", name="Note Ninja", description="Save {goal} notes.",
                    goal=50, stat_key="notes_saved"),
    BadgeDefinition(key="accuracy_ace", name="Accuracy Ace",
                    description="Maintain 90%+ accuracy in {goal} mock tests.",
                    goal=5, stat_key="high_accuracy_mock_tests"),
    BadgeDefinition(key="grammar_genius", name="Grammar Genius",
                    description="Complete {goal} grammar test questions.",
                    goal=20, stat_key="grammar_questions_completed"),
    # Streak-based
    BadgeDefinition(key="streak_master", name="Streak Master",
                    description="Maintain a {goal}-day study streak.",
                    goal=7, stat_key="streak"),
    # Situational, reported by the app as counters
    BadgeDefinition(key="elite_learner", name="Elite Learner", description="Unlock any {goal} badges.",
                    goal=5, stat_key="badges"),
    BadgeDefinition(key="quick_starter", name="Quick Starter",
                    description="Take your first mock test within 24 hours of joining.",
                    goal=1, stat_key="early_mock_tests"),
    BadgeDefinition(key="comeback_kid", name="Comeback Kid",
                    description="Score higher after two low-score tests.",
                    goal=1, stat_key="comeback_mock_tests"),
    BadgeDefinition(key="silent_slayer", name="Silent Slayer",
                    description="Complete 3 full mock tests in a single day.",
                    goal=1, stat_key="mock_test_marathon_days"),
    BadgeDefinition(key="welcome_rookie", name="Welcome Rookie",
                    description="Earned by successfully logging in for the first time.",
                    goal=1, stat_key="logins"),
    # XP-based
    BadgeDefinition(key="xp_hunter", name="XP Hunter", description="Earn {goal} XP.",
                    goal=1000, stat_key="xp"),
    BadgeDefinition(key="xp_prodigy", name="XP Prodigy", description="Earn {goal} XP.",
                    goal=10000, stat_key="xp"),
    BadgeDefinition(key="xp_master", name="XP Master", description="Earn {goal} XP.",
                    goal=30000, stat_key="xp"),
    BadgeDefinition(key="xp_king_queen", name="XP King/Queen", description="Earn {goal} XP.",
                    goal=50000, stat_key="xp"),
    BadgeDefinition(key="xp_legend", name="XP Legend", description="Earn {goal} XP.",
                    goal=70000, stat_key="xp"),
    BadgeDefinition(key="xp_god_mode", name="XP God Mode", description="Earn {goal} XP.",
                    goal=100000, stat_key="xp"),
]


class BadgeEngine:
    """Moves badges through locked -> unclaimed -> claimed.

    Unlocking only ever adds to `Profile.unclaimed_badges`; a badge reaches
    `Profile.badges` through an explicit claim.
    """

    def __init__(self, definitions: Sequence[BadgeDefinition] = BADGE_CATALOG):
        keys = [d.key for d in definitions]
        if len(keys) != len(set(keys)):
            raise ValueError("badge keys must be unique")
        self.definitions = tuple(definitions)
        self._by_key = {d.key: d for d in self.definitions}

    def get(self, key: str) -> BadgeDefinition | None:
        return self._by_key.get(key)

    @staticmethod
    def progress_value(profile: Profile, definition: BadgeDefinition) -> int:
        if definition.stat_key == "xp":
            return profile.xp
        if definition.stat_key == "streak":
            return profile.streak
        if definition.stat_key == "badges":
            return len(profile.badges)
        return profile.stat(definition.stat_key)

    def evaluate(self, profile: Profile) -> list[str]:
        """Keys whose goal is met but which are neither unclaimed nor claimed."""
        known = profile.badges | profile.unclaimed_badges
        return [
            d.key
            for d in self.definitions
            if d.key not in known and self.progress_value(profile, d) >= d.goal
        ]

    def unlock(self, profile: Profile) -> tuple[Profile, list[str]]:
        """Evaluate and move newly qualifying badges into the unclaimed pool."""
        new_keys = self.evaluate(profile)
        if not new_keys:
            return profile, []
        for key in new_keys:
            logger.info("badge_unlocked", user_id=profile.user_id, badge=key)
        updated = profile.model_copy(
            deep=True,
            update={"unclaimed_badges": profile.unclaimed_badges | frozenset(new_keys)}
        )
        return updated, new_keys

    def claim(self, profile: Profile, key: str) -> Profile:
        if key not in profile.unclaimed_badges:
            raise InvalidClaim(key)
        logger.info("badge_claimed", user_id=profile.user_id, badge=key)
        return profile.model_copy(
            deep=True,
            update={
                "unclaimed_badges": profile.unclaimed_badges - {key},
                "badges": profile.badges | {key},
            }
        )

    def equip(self, profile: Profile, key: str | None) -> Profile:
        """Select a claimed badge for display, or clear it with None."""
        if key is not None and key not in profile.badges:
            raise InvalidEquip(key)
        return profile.model_copy(deep=True, update={"equipped_badge": key})

    def progress(self, profile: Profile) -> list[BadgeProgress]:
        """Progress of every catalog badge, in catalog order."""
        results = []
        for d in self.definitions:
            value = self.progress_value(profile, d)
            if d.key in profile.badges:
                status = BadgeStatus.CLAIMED
            elif d.key in profile.unclaimed_badges:
                status = BadgeStatus.UNCLAIMED
            else:
                status = BadgeStatus.LOCKED
            results.append(BadgeProgress(
                key=d.key,
                name=d.name,
                description=d.describe(),
                value=value,
                goal=d.goal,
                percent=min(value / d.goal * 100, 100.0),
                status=status,
            ))
        return results
