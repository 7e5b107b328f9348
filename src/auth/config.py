"""
Authentication Configuration

Settings for JWT validation and auth behavior.
"""

import os
from functools import lru_cache

from pydantic_settings import BaseSettings

API_KEY_PREFIX = "nm_live_"


class AuthConfig(BaseSettings):
    """Authentication configuration loaded from environment."""

    # JWT Settings (tokens are issued by the main app)
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # Auth behavior
    auth_enabled: bool = True  # Set to False for local dev without auth

    # Dev user used when auth is disabled
    dev_user_id: str = "b61cbbf9-15b0-4353-8d49-89952042cf75"
    dev_user_email: str = "dev@nichemining.local"

    class Config:
        env_prefix = ""
        extra = "ignore"

    @property
    def is_configured(self) -> bool:
        """Check if auth is properly configured."""
        return bool(self.jwt_secret)


@lru_cache()
def get_auth_config() -> AuthConfig:
    """Get cached auth configuration."""
    return AuthConfig(
        jwt_secret=os.getenv("JWT_SECRET", ""),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        auth_enabled=os.getenv("AUTH_ENABLED", "true").lower() == "true",
        dev_user_id=os.getenv("DEV_USER_ID", "b61cbbf9-15b0-4353-8d49-89952042cf75"),
        dev_user_email=os.getenv("DEV_USER_EMAIL", "dev@nichemining.local"),
    )
