"""
Authentication and Authorization Module

Two ways to authenticate, both as `Authorization: Bearer <token>`:
1. Session JWT - HS256 tokens issued by the main app (`userId` claim)
2. API Key - `nm_live_...` keys for programmatic access, stored hashed

Users are synced to the local database on first access.

Usage:
    @router.post("/website-data/overview")
    async def overview(
        request: OverviewRequest,
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        website = get_owned_website(db, request.websiteId, current_user)
        ...
"""

from .config import AuthConfig, get_auth_config, API_KEY_PREFIX
from .jwt import verify_token, extract_user_id, create_token, JWTError
from .keys import hash_key, generate_key, create_api_key, lookup_api_key, revoke_api_key
from .models import User, ApiKey
from .sync import sync_user, sync_user_from_token
from .dependencies import (
    AuthError,
    get_current_user,
    get_owned_website,
)

__all__ = [
    # Config
    "AuthConfig",
    "get_auth_config",
    "API_KEY_PREFIX",
    # JWT validation
    "verify_token",
    "extract_user_id",
    "create_token",
    "JWTError",
    # API keys
    "hash_key",
    "generate_key",
    "create_api_key",
    "lookup_api_key",
    "revoke_api_key",
    # Models
    "User",
    "ApiKey",
    # User sync
    "sync_user",
    "sync_user_from_token",
    # FastAPI dependencies
    "AuthError",
    "get_current_user",
    "get_owned_website",
]
