"""
FastAPI Authentication Dependencies

Provides dependency injection for authentication and authorization.

A request authenticates with `Authorization: Bearer <token>` where the
token is either a session JWT from the main app or an `nm_live_` API key.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from src.database.session import get_db
from src.database.models import UserWebsite
from src.auth.models import User
from src.auth.jwt import verify_token, JWTError
from src.auth.keys import is_api_key, lookup_api_key
from src.auth.sync import sync_user, sync_user_from_token, parse_user_id
from src.auth.config import get_auth_config

logger = logging.getLogger(__name__)

# HTTP Bearer token extraction
security = HTTPBearer(auto_error=False)

UNAUTHORIZED_MESSAGE = (
    "Authorization required. Please provide Bearer token (JWT) or API key "
    "(nm_live_...) in Authorization header."
)
EXPIRED_MESSAGE = "Token expired. Please refresh your session or re-login."


class AuthError(Exception):
    """
    Authentication or ownership failure.

    Rendered by the app as a JSON body (not wrapped in `detail`) so the
    dashboard can branch on `errorType`.
    """

    def __init__(self, status_code: int, error: str, message: Optional[str] = None, **extra: Any):
        super().__init__(message or error)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error, **self.extra}
        if self.message:
            body["message"] = self.message
        return body


def unauthorized(expired: bool = False) -> AuthError:
    if expired:
        return AuthError(
            status.HTTP_401_UNAUTHORIZED, "Unauthorized", EXPIRED_MESSAGE, errorType="expired"
        )
    return AuthError(status.HTTP_401_UNAUTHORIZED, "Unauthorized", UNAUTHORIZED_MESSAGE)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user.

    JWTs are tried first, then API keys. The local user row is created
    on first access.

    Raises:
        AuthError 401: Missing, invalid or expired credentials
        AuthError 403: If user is disabled
    """
    config = get_auth_config()

    # If auth is disabled (local dev), return the dev user
    if not config.auth_enabled:
        return _get_dev_user(db)

    if not credentials:
        raise unauthorized()

    token = credentials.credentials
    user = None

    if is_api_key(token):
        api_key = lookup_api_key(db, token)
        if api_key is not None:
            user = api_key.user
    else:
        try:
            payload = verify_token(token)
        except JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise unauthorized(expired=e.expired)
        user = sync_user_from_token(db, payload)

    if user is None:
        raise unauthorized()

    if not user.is_active:
        raise AuthError(status.HTTP_403_FORBIDDEN, "Forbidden", "User account is disabled")

    return user


def get_owned_website(db: Session, website_id: Any, user: User) -> UserWebsite:
    """
    Load a website and check it belongs to `user`.

    Raises:
        AuthError 404: Unknown website (or malformed id)
        AuthError 403: Website owned by another user
    """
    website_uuid = website_id if isinstance(website_id, UUID) else parse_user_id(website_id)
    website = db.get(UserWebsite, website_uuid) if website_uuid else None

    if website is None:
        raise AuthError(status.HTTP_404_NOT_FOUND, "Website not found", success=False)

    if website.user_id != user.id:
        raise AuthError(status.HTTP_403_FORBIDDEN, "Website does not belong to user", success=False)

    return website


def _get_dev_user(db: Session) -> User:
    """
    Get or create a development user when auth is disabled.

    This allows local development without the main app.
    """
    config = get_auth_config()
    return sync_user(db, parse_user_id(config.dev_user_id), email=config.dev_user_email, full_name="Development User")
