from fastapi import APIRouter, Depends, Query

from ...core.errors import ChallengeNotFound
from ...dependencies import get_engine
from ...schemas import BadgeOut, Challenge
from ...services import challenges as challenge_service
from ...services.badges import BADGES
from ...services.submissions import SubmissionEngine

router = APIRouter()


@router.get("", response_model=list[Challenge])
async def list_challenges(
    category: str | None = None,
    active_only: bool = Query(default=True, description="Only challenges open right now"),
    engine: SubmissionEngine = Depends(get_engine),
) -> list[Challenge]:
    active_at = engine.clock() if active_only else None
    return await challenge_service.list_challenges(engine.db, category=category, active_at=active_at)


@router.get("/badges", response_model=list[BadgeOut])
async def list_badges() -> list[BadgeOut]:
    """Badge catalog in award order."""
    return [BadgeOut(id=badge.id, name=badge.name, description=badge.description) for badge in BADGES]


@router.get("/{challenge_id}", response_model=Challenge)
async def get_challenge(
    challenge_id: str,
    engine: SubmissionEngine = Depends(get_engine),
) -> Challenge:
    challenge = await challenge_service.get_challenge(engine.db, challenge_id)
    if challenge is None:
        raise ChallengeNotFound(challenge_id=challenge_id)
    return challenge
