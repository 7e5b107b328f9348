"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Gemini proxy (Required for every agent)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_TUZI_API_KEY: Optional[str] = None
    GEMINI_PROXY_URL: str = "https://api.302.ai"
    GEMINI_TUZI_PROXY_URL: str = "https://api.tu-zi.com"
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_IMAGE_MODEL: str = "gemini-3-pro-image-preview"

    # ThorData SERP scraping
    THORDATA_API_TOKEN: Optional[str] = None
    THORDATA_API_URL: str = "https://scraperapi.thordata.com/request"

    # SE-Ranking keyword metrics
    SERANKING_API_KEY: Optional[str] = None

    # Firecrawl (served through the 302 proxy)
    FIRECRAWL_API_KEY: Optional[str] = None
    FIRECRAWL_BASE_URL: str = "https://api.302.ai"

    # DataForSEO domain analytics
    DATAFORSEO_LOGIN: Optional[str] = None
    DATAFORSEO_PASSWORD: Optional[str] = None

    # Main app (credits billing)
    MAIN_APP_URL: str = "https://niche-mining-web.vercel.app"

    # Database pool
    DB_POOL_MIN: int = 2
    DB_POOL_MAX: int = 10

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Timeouts
    API_TIMEOUT: int = 60
    LLM_TIMEOUT: int = 120

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
