from __future__ import annotations

import logging
import re
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.config import settings
from ..core.errors import InvalidChallenge
from ..db.guard import guarded
from ..schemas.challenges import CHALLENGE_ID_PATTERN, Challenge, ChallengeIn

logger = logging.getLogger(__name__)

CHALLENGES_COL = "challenges"


async def publish_challenge(
    db: AsyncIOMotorDatabase, challenge_id: str, payload: ChallengeIn, now: datetime
) -> Challenge:
    """
    Publish a challenge under ``challenge_id``.

    Published challenges are never edited field by field: a new version
    replaces the stored document wholesale, so a submission always sees one
    consistent set of target, radius and tier.
    """
    if not re.fullmatch(CHALLENGE_ID_PATTERN, challenge_id):
        raise InvalidChallenge("Challenge id must be a lowercase slug.", challenge_id=challenge_id)

    doc = payload.model_dump()
    if doc["radius_meters"] is None:
        doc["radius_meters"] = settings.default_radius_meters
    doc["difficulty"] = payload.difficulty.value
    doc["published_at"] = now

    await guarded(
        db[CHALLENGES_COL].replace_one({"_id": challenge_id}, doc, upsert=True),
        op="challenges.publish",
    )
    logger.info("published challenge %s (%s, %s)", challenge_id, payload.category, payload.difficulty.value)
    return Challenge(id=challenge_id, **doc)


async def get_challenge(db: AsyncIOMotorDatabase, challenge_id: str) -> Challenge | None:
    doc = await guarded(db[CHALLENGES_COL].find_one({"_id": challenge_id}), op="challenges.get")
    if doc:
        return Challenge.from_mongo(doc)
    return None


async def list_challenges(
    db: AsyncIOMotorDatabase,
    category: str | None = None,
    active_at: datetime | None = None,
) -> list[Challenge]:
    """Challenges sorted by id; ``active_at`` keeps only those open at that instant."""
    query = {"category": category} if category else {}
    cursor = db[CHALLENGES_COL].find(query).sort("_id", 1)
    docs = await guarded(cursor.to_list(length=None), op="challenges.list")
    items = [Challenge.from_mongo(doc) for doc in docs]
    if active_at is not None:
        items = [item for item in items if item.is_active(active_at)]
    return items
