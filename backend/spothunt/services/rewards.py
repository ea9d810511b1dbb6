from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ..db.guard import guarded
from ..schemas.challenges import Challenge
from .badges import UserStats, newly_unlocked

logger = logging.getLogger(__name__)

PROFILES_COL = "user_profiles"


@dataclass
class RewardOutcome:
    points_awarded: int
    new_badges: list[str] = field(default_factory=list)
    profile: dict = field(default_factory=dict)


async def credit_profile(
    db: AsyncIOMotorDatabase,
    user_id: str,
    submission_id: str,
    challenge: Challenge,
    scopes: list[str],
    latitude: float,
    longitude: float,
    now: datetime,
) -> dict | None:
    """
    Credit one completed challenge to the user's profile.

    The update only matches while ``completed.<challenge id>`` is absent, so
    for a given user and challenge exactly one caller gets the profile back;
    every other caller gets ``None`` and nothing is written.

    Args:
        db: MongoDB database
        user_id: owner of the submission
        submission_id: accepted submission being credited
        challenge: the completed challenge (gives points, tier and category)
        scopes: leaderboard scopes besides global that earn the points
        latitude: accepted claim latitude, kept for the next velocity check
        longitude: accepted claim longitude
        now: server receipt time of the submission

    Returns:
        the profile after the update, or ``None`` if already credited
    """
    return await guarded(
        db[PROFILES_COL].find_one_and_update(
            {"_id": user_id, f"completed.{challenge.id}": {"$exists": False}},
            {
                "$inc": {
                    "points": challenge.points,
                    "accepted_count": 1,
                    f"tier_counts.{challenge.difficulty.value}": 1,
                    **{f"scope_points.{scope}": challenge.points for scope in scopes},
                },
                "$addToSet": {"categories": challenge.category},
                "$set": {
                    f"completed.{challenge.id}": submission_id,
                    "last_location": {"latitude": latitude, "longitude": longitude, "at": now},
                    "updated_at": now,
                },
            },
            return_document=ReturnDocument.AFTER,
        ),
        op="rewards.credit",
    )


async def award_badges(db: AsyncIOMotorDatabase, user_id: str, profile: dict, now: datetime) -> list[str]:
    """
    Award every catalog badge the profile now qualifies for.

    Each push is conditional on the badge not being present yet; a badge
    counts as new only for the caller whose write actually landed.
    """
    held = [badge["id"] for badge in profile.get("badges", [])]
    awarded: list[str] = []
    for badge in newly_unlocked(UserStats.from_profile(profile), held):
        result = await guarded(
            db[PROFILES_COL].update_one(
                {"_id": user_id, "badges.id": {"$ne": badge.id}},
                {"$push": {"badges": {"id": badge.id, "awarded_at": now}}},
            ),
            op="rewards.badge",
        )
        if result.modified_count == 1:
            awarded.append(badge.id)
    if awarded:
        logger.info("user=%s unlocked badges %s", user_id, ", ".join(awarded))
    return awarded


async def grant_rewards(
    db: AsyncIOMotorDatabase,
    user_id: str,
    submission_id: str,
    challenge: Challenge,
    scopes: list[str],
    latitude: float,
    longitude: float,
    now: datetime,
) -> RewardOutcome | None:
    """Points, then badges, for a newly accepted submission. ``None`` if the challenge was already credited."""
    profile = await credit_profile(db, user_id, submission_id, challenge, scopes, latitude, longitude, now)
    if profile is None:
        return None
    new_badges = await award_badges(db, user_id, profile, now)
    return RewardOutcome(points_awarded=challenge.points, new_badges=new_badges, profile=profile)
