"""
API Key Management

Generate and validate `nm_live_` API keys. Keys are stored in the
api_keys table as SHA-256 hashes; the raw key is shown once at creation.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from src.auth.config import API_KEY_PREFIX
from src.auth.models import ApiKey

logger = logging.getLogger(__name__)


def hash_key(raw_key: str) -> str:
    """Create hash of API key for secure storage."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_key() -> str:
    """Generate a new raw API key."""
    return f"{API_KEY_PREFIX}{secrets.token_hex(24)}"


def is_api_key(token: str) -> bool:
    return bool(token) and token.startswith(API_KEY_PREFIX)


def create_api_key(
    db: Session,
    user_id: UUID,
    name: str,
    expires_days: Optional[int] = None,
) -> Tuple[str, ApiKey]:
    """
    Create a new API key.

    Returns:
        Tuple of (raw_key, ApiKey row)
        IMPORTANT: raw_key is only returned once and cannot be recovered!
    """
    raw_key = generate_key()
    api_key = ApiKey(
        user_id=user_id,
        name=name,
        key_hash=hash_key(raw_key),
        key_prefix=raw_key[:12],
        expires_at=datetime.utcnow() + timedelta(days=expires_days) if expires_days else None,
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)

    logger.info(f"Created API key {api_key.key_prefix}... for user {user_id}")
    return raw_key, api_key


def lookup_api_key(db: Session, raw_key: str) -> Optional[ApiKey]:
    """
    Find the active, unexpired key matching `raw_key`.

    Bumps last_used_at on a match.
    """
    if not is_api_key(raw_key):
        return None

    api_key = db.query(ApiKey).filter(ApiKey.key_hash == hash_key(raw_key)).first()
    if api_key is None or not api_key.is_valid():
        return None

    api_key.last_used_at = datetime.utcnow()
    db.commit()
    return api_key


def revoke_api_key(db: Session, key_id: UUID) -> bool:
    """Revoke (deactivate) an API key."""
    api_key = db.get(ApiKey, key_id)
    if api_key is None:
        return False
    api_key.is_active = False
    db.commit()
    logger.info(f"Revoked API key: {key_id}")
    return True
