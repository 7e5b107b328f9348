"""
JWT Token Validation

Validates the HS256 session tokens issued by the main app. The user id
is carried in a `userId` claim (older tokens use `sub`).
"""

import logging
import time
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWTError

from src.auth.config import get_auth_config

logger = logging.getLogger(__name__)


class JWTError(Exception):
    """Custom JWT validation error."""

    def __init__(self, message: str, expired: bool = False):
        super().__init__(message)
        self.expired = expired


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a session JWT.

    Args:
        token: The JWT token from the Authorization header

    Returns:
        Decoded token payload

    Raises:
        JWTError: If token is invalid, expired, or malformed. `expired`
            is set for tokens that were valid but have expired.
    """
    config = get_auth_config()
    if not config.jwt_secret:
        raise JWTError("JWT_SECRET not configured")

    try:
        payload = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired", expired=True)
    except jwt.InvalidSignatureError:
        raise JWTError("Invalid token signature")
    except jwt.DecodeError as e:
        raise JWTError(f"Token decode error: {str(e)}")
    except PyJWTError as e:
        raise JWTError(f"Token validation error: {str(e)}")

    if not extract_user_id(payload):
        raise JWTError("Token missing 'userId' claim")

    return payload


def extract_user_id(payload: Dict[str, Any]) -> Optional[str]:
    """User id from a verified payload."""
    user_id = payload.get("userId") or payload.get("sub")
    return str(user_id) if user_id else None


def create_token(user_id: str, email: Optional[str] = None, expires_in: int = 24 * 3600) -> str:
    """
    Issue a session token signed with JWT_SECRET.

    The main app issues real tokens; this is for scripts and tests.
    """
    config = get_auth_config()
    now = int(time.time())
    payload = {"userId": user_id, "email": email, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)
