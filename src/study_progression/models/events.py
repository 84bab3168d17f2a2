"""User-visible events produced by progression entry points."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from study_progression.models.profile import SpinKind


class LevelUp(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["level_up"] = "level_up"
    new_level: int
    previous_level: int


class BadgeUnlocked(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["badge_unlocked"] = "badge_unlocked"
    key: str


class StreakBonus(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["streak_bonus"] = "streak_bonus"
    amount: int
    streak: int


class SpinResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["spin_result"] = "spin_result"
    kind: SpinKind
    xp_value: int
    segment_index: int


Event = Annotated[
    LevelUp | BadgeUnlocked | StreakBonus | SpinResult,
    Field(discriminator="type"),
]

# Parses serialized event lists (e.g. queued notifications) back into models.
EventList = TypeAdapter(list[Event])
