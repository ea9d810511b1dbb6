from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SubmissionStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    flagged = "flagged"


class SubmissionCreate(BaseModel):
    challenge_id: str = Field(min_length=1)
    latitude: float
    longitude: float
    accuracy: float = Field(..., description="Reported GPS accuracy in meters")
    proof_ref: str = Field(min_length=1, max_length=512)  # opaque handle, e.g. uploaded image id
    client_timestamp: datetime | None = None


class SubmissionResult(BaseModel):
    submission_id: str
    status: SubmissionStatus
    reason: str | None = None
    points_awarded: int = 0
    new_badges: list[str] = Field(default_factory=list)


class SubmissionOut(BaseModel):
    id: str
    challenge_id: str
    user_id: str
    latitude: float
    longitude: float
    accuracy: float
    proof_ref: str
    client_timestamp: datetime | None = None
    received_at: datetime
    status: SubmissionStatus
    reason: str | None = None
    distance_meters: float | None = None
    implied_speed_kmh: float | None = None
    risk_signals: list[str] = Field(default_factory=list)
    points_awarded: int = 0
    decided_at: datetime | None = None

    @classmethod
    def from_mongo(cls, doc: dict[str, Any]) -> "SubmissionOut":
        doc = {**doc}
        doc["id"] = str(doc.pop("_id"))
        return cls(**doc)
