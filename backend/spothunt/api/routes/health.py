from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from ...db.guard import guarded
from ...dependencies import get_mongo_db, get_redis

router = APIRouter()


@router.get("/health", summary="Liveness check")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready", summary="Readiness check (MongoDB and Redis reachable)")
async def readiness(
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    redis: Redis = Depends(get_redis),
) -> dict[str, str]:
    try:
        await guarded(db.command("ping"), op="health.mongo")
        await guarded(redis.ping(), op="health.redis")
    except HTTPException as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.detail) from exc
    return {"status": "ready"}
