from fastapi import APIRouter, Depends, Path, Query

from ...core.auth import check_admin
from ...dependencies import get_engine
from ...schemas import CHALLENGE_ID_PATTERN, Challenge, ChallengeIn, CurrentUser, SubmissionOut, UserStanding
from ...services.submissions import SubmissionEngine

router = APIRouter()


@router.put("/challenges/{challenge_id}", response_model=Challenge)
async def publish_challenge(
    payload: ChallengeIn,
    challenge_id: str = Path(pattern=CHALLENGE_ID_PATTERN),
    current_user: CurrentUser = Depends(check_admin),
    engine: SubmissionEngine = Depends(get_engine),
) -> Challenge:
    """Publish a challenge, replacing any previous version wholesale."""
    return await engine.publish_challenge(challenge_id, payload)


@router.get("/submissions/flagged", response_model=list[SubmissionOut])
async def list_flagged_submissions(
    limit: int = Query(default=50, ge=1, le=500),
    current_user: CurrentUser = Depends(check_admin),
    engine: SubmissionEngine = Depends(get_engine),
) -> list[SubmissionOut]:
    """Flagged submissions awaiting manual review, oldest first."""
    return await engine.list_flagged(limit)


@router.post("/users/{user_id}/reconcile", response_model=UserStanding)
async def reconcile_user(
    user_id: str,
    current_user: CurrentUser = Depends(check_admin),
    engine: SubmissionEngine = Depends(get_engine),
) -> UserStanding:
    """Rebuild a user's totals and leaderboard entries from accepted submissions."""
    return await engine.reconcile_user(user_id)
