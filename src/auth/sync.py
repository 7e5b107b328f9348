"""
User Synchronization

Users live in the main app. A local users row is created on first access
so websites, workflow configs and API keys can reference it.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from src.auth.jwt import extract_user_id
from src.auth.models import User

logger = logging.getLogger(__name__)


def parse_user_id(raw: str) -> Optional[UUID]:
    """UUID from a token claim, None when it is not one."""
    try:
        return UUID(str(raw))
    except (TypeError, ValueError):
        return None


def sync_user(db: Session, user_id: UUID, email: Optional[str] = None, full_name: Optional[str] = None) -> User:
    """
    Get the local user, creating it on first access.

    Email and name are refreshed when the token carries them.
    """
    user = db.get(User, user_id)

    if user is None:
        logger.info(f"Creating new user: {user_id}")
        user = User(id=user_id, email=email, full_name=full_name, is_active=True)
        db.add(user)
        db.commit()
        db.refresh(user)
    elif (email and user.email != email) or (full_name and user.full_name != full_name):
        user.email = email or user.email
        user.full_name = full_name or user.full_name
        db.commit()
        db.refresh(user)

    return user


def sync_user_from_token(db: Session, payload: Dict[str, Any]) -> Optional[User]:
    """
    Sync the user named by a verified JWT payload.

    Returns None when the token's user id is not a UUID.
    """
    user_id = parse_user_id(extract_user_id(payload))
    if user_id is None:
        return None
    return sync_user(db, user_id, email=payload.get("email"), full_name=payload.get("name"))
