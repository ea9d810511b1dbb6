from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field, model_validator

from ..core.clock import ensure_utc

# Challenge ids are admin-chosen slugs; they double as field names in profile documents
CHALLENGE_ID_PATTERN = r"^[a-z0-9][a-z0-9_-]{0,63}$"
# Categories end up in leaderboard scopes and profile field names too
CATEGORY_PATTERN = r"^[a-z0-9][a-z0-9_-]{0,39}$"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"

    @property
    def points(self) -> int:
        return DIFFICULTY_POINTS[self]


DIFFICULTY_POINTS: dict[Difficulty, int] = {
    Difficulty.easy: 10,
    Difficulty.medium: 25,
    Difficulty.hard: 50,
}


class ChallengeIn(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    category: str = Field(pattern=CATEGORY_PATTERN)
    spot_name: str = ""
    address: str = ""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_meters: float | None = Field(default=None, gt=0)  # None: configured default
    difficulty: Difficulty = Difficulty.easy
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    @model_validator(mode="after")
    def _check_window(self) -> "ChallengeIn":
        if self.starts_at and self.ends_at and self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class Challenge(BaseModel):
    id: str
    title: str
    category: str
    spot_name: str = ""
    address: str = ""
    latitude: float
    longitude: float
    radius_meters: float
    difficulty: Difficulty
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    published_at: datetime | None = None

    @computed_field
    @property
    def points(self) -> int:
        return self.difficulty.points

    def is_active(self, now: datetime) -> bool:
        if self.starts_at and now < ensure_utc(self.starts_at):
            return False
        if self.ends_at and now > ensure_utc(self.ends_at):
            return False
        return True

    @classmethod
    def from_mongo(cls, doc: dict[str, Any]) -> "Challenge":
        doc = {**doc}
        doc["id"] = str(doc.pop("_id"))
        return cls(**doc)