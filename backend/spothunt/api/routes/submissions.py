from fastapi import APIRouter, Depends, Response, status

from ...core.auth import get_current_user
from ...core.errors import REJECTION_STATUS_CODES, UNPROCESSABLE, SubmissionNotFound
from ...dependencies import get_engine
from ...schemas import CurrentUser, SubmissionCreate, SubmissionOut, SubmissionResult, SubmissionStatus
from ...services.submissions import SubmissionEngine

router = APIRouter()


@router.post("", response_model=SubmissionResult, status_code=status.HTTP_201_CREATED)
async def submit_proof(
    payload: SubmissionCreate,
    response: Response,
    current_user: CurrentUser = Depends(get_current_user),
    engine: SubmissionEngine = Depends(get_engine),
) -> SubmissionResult:
    """
    Submit proof of a visit.

    201 when accepted, 202 when held for manual review, and the rejection's
    own status (409/422/429) with the same body when rejected.
    """
    result = await engine.submit_proof(current_user.id, payload)
    if result.status is SubmissionStatus.flagged:
        response.status_code = status.HTTP_202_ACCEPTED
    elif result.status is SubmissionStatus.rejected:
        response.status_code = REJECTION_STATUS_CODES.get(result.reason, UNPROCESSABLE)
    return result


@router.get("/{submission_id}", response_model=SubmissionOut)
async def get_submission(
    submission_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: SubmissionEngine = Depends(get_engine),
) -> SubmissionOut:
    submission = await engine.get_submission(submission_id)
    # other users' submissions are reported as missing
    if submission.user_id != current_user.id and not current_user.is_admin:
        raise SubmissionNotFound(submission_id=submission_id)
    return submission
