from typing import Any

import jwt
from fastapi import HTTPException, status

from .config import settings


class TokenError(HTTPException):
    def __init__(self, detail: str = "Invalid token."):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def decode_token(token: str) -> dict[str, Any]:
    """Verify a bearer token issued by the auth service and return its claims."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:  # includes ExpiredSignatureError, DecodeError
        raise TokenError(detail="Token could not be decoded.") from exc

    if not payload.get("sub"):
        raise TokenError(detail="Token has no subject.")
    return payload
