"""
Niche Mining Engine Database Layer

Usage:
    from src.database import init_db, get_db, get_db_context, UserWebsite

    init_db()

    with get_db_context() as db:
        website = db.get(UserWebsite, website_id)
"""

# Models
from .models import (
    Base,
    JSONType,
    UserWebsite,
    DomainOverviewCache,
    DomainKeywordsCache,
    DomainCompetitorsCache,
    RankedKeywordsCache,
    DomainKeywordRecommendationsCache,
    WorkflowConfig,
    to_epoch_ms,
)

# Session management
from .session import (
    get_db,
    get_db_context,
    get_engine,
    get_database_url,
    init_db,
    check_db_connection,
    get_db_info,
)

__all__ = [
    # Models
    "Base",
    "JSONType",
    "UserWebsite",
    "DomainOverviewCache",
    "DomainKeywordsCache",
    "DomainCompetitorsCache",
    "RankedKeywordsCache",
    "DomainKeywordRecommendationsCache",
    "WorkflowConfig",
    "to_epoch_ms",
    # Session
    "get_db",
    "get_db_context",
    "get_engine",
    "get_database_url",
    "init_db",
    "check_db_connection",
    "get_db_info",
]
