import hmac
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.errors import AuthError
from app.services.auth_service import AuthContext, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def is_internal_token(token: Optional[str]) -> bool:
    expected = settings.internal_api_token
    if not expected or not token:
        return False
    return hmac.compare_digest(token, expected)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise AuthError("Unauthorized")
    return decode_access_token(credentials.credentials)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[AuthContext]:
    """None for anonymous or internal service callers, a user context for dashboard tokens."""
    if credentials is None or not credentials.credentials:
        return None
    if is_internal_token(credentials.credentials):
        return None
    return decode_access_token(credentials.credentials)


def require_internal_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    if credentials is None or not is_internal_token(credentials.credentials):
        raise AuthError("Unauthorized")
