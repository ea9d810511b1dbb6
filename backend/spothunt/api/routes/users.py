from fastapi import APIRouter, Depends

from ...core.auth import get_current_user
from ...dependencies import get_engine
from ...schemas import CurrentUser, UserStanding
from ...services.submissions import SubmissionEngine

router = APIRouter()


@router.get("/me/standing", response_model=UserStanding)
async def my_standing(
    current_user: CurrentUser = Depends(get_current_user),
    engine: SubmissionEngine = Depends(get_engine),
) -> UserStanding:
    return await engine.get_user_standing(current_user.id)


@router.get("/{user_id}/standing", response_model=UserStanding)
async def user_standing(
    user_id: str,
    engine: SubmissionEngine = Depends(get_engine),
) -> UserStanding:
    standing = await engine.get_user_standing(user_id)
    # the daily allowance is private to its owner
    return standing.model_copy(update={"remaining_submissions_today": None})
