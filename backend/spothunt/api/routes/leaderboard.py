from fastapi import APIRouter, Depends, HTTPException, Query

from ...core.errors import UNPROCESSABLE
from ...dependencies import get_engine
from ...schemas import LeaderboardOut
from ...services.leaderboard import GLOBAL_SCOPE
from ...services.submissions import SubmissionEngine

router = APIRouter()


@router.get("", response_model=LeaderboardOut)
async def get_leaderboard(
    scope: str = Query(
        default=GLOBAL_SCOPE,
        description="'global', 'category:<name>', 'weekly', 'monthly', 'weekly:<YYYY>-W<ww>' or 'monthly:<YYYY>-<mm>'",
    ),
    limit: int = Query(default=10, ge=1, le=100),
    engine: SubmissionEngine = Depends(get_engine),
) -> LeaderboardOut:
    try:
        return await engine.get_leaderboard(scope, limit)
    except ValueError as exc:
        raise HTTPException(status_code=UNPROCESSABLE, detail=str(exc)) from exc
