from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

# Starlette renamed the 422 constant; the bare code works across releases
UNPROCESSABLE = 422


class EngineError(HTTPException):
    """Base class for errors raised by the verification engine."""

    code = "engine_error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False
    default_message = "Submission could not be processed."

    def __init__(self, message: str | None = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(
            status_code=type(self).status_code,
            detail={"code": self.code, "message": self.message, "retryable": self.retryable, **context},
        )


class InvalidCoordinate(EngineError):
    code = "invalid_coordinate"
    status_code = UNPROCESSABLE
    default_message = "Latitude/longitude out of range."


class ChallengeNotFound(EngineError):
    code = "challenge_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Challenge not found."


class SubmissionNotFound(EngineError):
    code = "submission_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Submission not found."


class InvalidChallenge(EngineError):
    code = "invalid_challenge"
    status_code = UNPROCESSABLE
    default_message = "Challenge definition is invalid."


class SubmissionRejected(EngineError):
    """Expected, user-visible rejection. Recorded on the submission as its terminal reason."""


class ChallengeInactive(SubmissionRejected):
    code = "challenge_inactive"
    status_code = UNPROCESSABLE
    default_message = "Challenge is outside its active window."


class RateLimitExceeded(SubmissionRejected):
    code = "rate_limit_exceeded"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Submission limit reached. Try again after the window resets."


class OutOfRange(SubmissionRejected):
    code = "out_of_range"
    status_code = UNPROCESSABLE
    default_message = "Claimed location is outside the challenge geofence."


class DuplicateSubmission(SubmissionRejected):
    code = "duplicate_submission"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Challenge already completed."


class StorageTimeout(EngineError):
    code = "storage_timeout"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_message = "Storage did not respond in time."


class StorageConflict(EngineError):
    code = "storage_conflict"
    status_code = status.HTTP_409_CONFLICT
    retryable = True
    default_message = "Concurrent update detected."


REJECTION_STATUS_CODES: dict[str, int] = {
    cls.code: cls.status_code
    for cls in (ChallengeInactive, RateLimitExceeded, OutOfRange, DuplicateSubmission)
}
