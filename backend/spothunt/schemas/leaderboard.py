from pydantic import BaseModel, Field


class LeaderboardRow(BaseModel):
    user_id: str
    score: int
    rank: int


class LeaderboardOut(BaseModel):
    scope: str
    items: list[LeaderboardRow] = Field(default_factory=list)
