from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorDatabase


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db["challenges"].create_index([("category", 1), ("difficulty", 1)])
    await db["submissions"].create_index([("user_id", 1), ("received_at", -1)])
    await db["submissions"].create_index([("status", 1), ("received_at", 1)])
    # At most one accepted submission per (user, challenge)
    await db["submissions"].create_index(
        [("user_id", 1), ("challenge_id", 1)],
        unique=True,
        partialFilterExpression={"status": "accepted"},
        name="uniq_accepted_claim",
    )
    await db["user_profiles"].create_index("join_seq", unique=True)
