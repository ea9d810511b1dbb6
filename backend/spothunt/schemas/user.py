from datetime import datetime

from pydantic import BaseModel, Field


class BadgeAward(BaseModel):
    id: str
    awarded_at: datetime


class BadgeOut(BaseModel):
    id: str
    name: str
    description: str


class MilestoneProgress(BaseModel):
    next_milestone: int
    points_needed: int
    title: str


class UserStanding(BaseModel):
    user_id: str
    score: int = 0
    rank: int | None = None  # None until the first accepted submission
    badges: list[BadgeAward] = Field(default_factory=list)
    accepted_count: int = 0
    remaining_submissions_today: int | None = None
    milestone: MilestoneProgress | None = None


class CurrentUser(BaseModel):
    id: str
    is_admin: bool = False
