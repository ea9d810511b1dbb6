from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from redis.asyncio import Redis

from ..core.errors import StorageConflict
from ..db.guard import guarded
from .leaderboard import category_scope, period_scopes

logger = logging.getLogger(__name__)

PROFILES_COL = "user_profiles"
SUBMISSIONS_COL = "submissions"
JOIN_SEQ_KEY = "seq:profile_join"


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> dict | None:
    return await guarded(db[PROFILES_COL].find_one({"_id": user_id}), op="profiles.get")


async def ensure_profile(db: AsyncIOMotorDatabase, redis: Redis, user_id: str, now: datetime) -> dict:
    """
    Return the user's profile, creating it on first contact.

    A new profile gets the next value of a Redis counter as ``join_seq``;
    leaderboard ties are broken by it, earliest account first. Two handlers
    racing to create the same profile may both draw a number, but only the
    first insert keeps its value.
    """
    doc = await get_profile(db, user_id)
    if doc:
        return doc

    join_seq = int(await guarded(redis.incr(JOIN_SEQ_KEY), op="profiles.join_seq"))
    try:
        doc = await guarded(
            db[PROFILES_COL].find_one_and_update(
                {"_id": user_id},
                {
                    "$setOnInsert": {
                        "join_seq": join_seq,
                        "created_at": now,
                        "points": 0,
                        "accepted_count": 0,
                        "tier_counts": {},
                        "categories": [],
                        "scope_points": {},
                        "completed": {},
                        "badges": [],
                        "last_location": None,
                    }
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            ),
            op="profiles.create",
        )
    except StorageConflict as exc:
        if not isinstance(exc.__cause__, DuplicateKeyError):
            raise
        # concurrent upsert on the same _id; the other insert won
        doc = None
    if doc is None:
        doc = await get_profile(db, user_id)
    if doc and doc.get("join_seq") == join_seq:
        logger.info("created profile for user=%s join_seq=%d", user_id, join_seq)
    return doc


async def accepted_totals(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    """Recompute a user's totals from their accepted submissions."""
    tier_counts: Counter[str] = Counter()
    category_points: Counter[str] = Counter()
    scope_points: Counter[str] = Counter()
    completed: dict[str, str] = {}
    points = 0
    cursor = db[SUBMISSIONS_COL].find({"user_id": user_id, "status": "accepted"})
    async for doc in cursor:
        awarded = int(doc.get("points_awarded", 0))
        points += awarded
        tier_counts[doc["difficulty"]] += 1
        category_points[doc["category"]] += awarded
        for scope in (category_scope(doc["category"]), *period_scopes(doc["received_at"])):
            scope_points[scope] += awarded
        completed[doc["challenge_id"]] = str(doc["_id"])
    return {
        "points": points,
        "accepted_count": len(completed),
        "tier_counts": dict(tier_counts),
        "category_points": dict(category_points),
        "scope_points": dict(scope_points),
        "completed": completed,
    }


async def apply_totals(db: AsyncIOMotorDatabase, user_id: str, totals: dict[str, Any], now: datetime) -> dict | None:
    """Raise the stored profile to at least ``totals``; counters never decrease."""
    update: dict[str, Any] = {
        "$max": {
            "points": totals["points"],
            "accepted_count": totals["accepted_count"],
            **{f"tier_counts.{tier}": count for tier, count in totals["tier_counts"].items()},
            **{f"scope_points.{scope}": pts for scope, pts in totals["scope_points"].items()},
        },
        "$set": {
            "reconciled_at": now,
            **{f"completed.{cid}": sid for cid, sid in totals["completed"].items()},
        },
    }
    if totals["category_points"]:
        update["$addToSet"] = {"categories": {"$each": sorted(totals["category_points"])}}
    return await guarded(
        db[PROFILES_COL].find_one_and_update({"_id": user_id}, update, return_document=ReturnDocument.AFTER),
        op="profiles.reconcile",
    )
