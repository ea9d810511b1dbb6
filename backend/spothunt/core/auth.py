from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..schemas.user import CurrentUser
from .config import settings
from .security import TokenError, decode_token

http_bearer = HTTPBearer(auto_error=False)


async def get_current_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> dict:
    if credentials is None:
        raise TokenError(detail="Authentication required.")
    payload = decode_token(credentials.credentials)
    if payload.get("type", "access") != "access":
        raise TokenError(detail="Not an access token.")
    return payload


async def get_current_user(payload: dict = Depends(get_current_token)) -> CurrentUser:
    user_id = str(payload["sub"])
    return CurrentUser(id=user_id, is_admin=user_id in settings.admin_user_id_set)


def check_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Admins are listed by user id in the ADMIN_USER_IDS setting."""
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required.")
    return current_user
