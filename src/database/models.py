"""
SQLAlchemy Models for the Niche Mining Engine

Tables:
1. user_websites - websites a user tracks on the dashboard
2. *_cache - DataForSEO responses cached per website, each row carrying
   cache_expires_at (or expires_at for recommendations)
3. workflow_configs - named prompt overrides per workflow

users and api_keys live in src.auth.models on the same Base.

Column types stay portable (generic JSON with a JSONB variant, generic
UUID) so the same models run against PostgreSQL and the SQLite fallback.
"""

from datetime import datetime
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Numeric, Boolean, Date, DateTime, Text,
    ForeignKey, Index, UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def to_epoch_ms(value: datetime) -> int:
    """Naive UTC datetime as epoch milliseconds."""
    if value is None:
        return None
    return int((value - datetime(1970, 1, 1)).total_seconds() * 1000)


# =============================================================================
# WEBSITES
# =============================================================================

class UserWebsite(Base):
    """A website a user tracks on the dashboard."""
    __tablename__ = "user_websites"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    website_url = Column(String(1000), nullable=False)
    website_domain = Column(String(255))
    website_title = Column(String(500))
    is_default = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="websites")

    __table_args__ = (
        Index("idx_user_websites_user", "user_id"),
    )

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "url": self.website_url,
            "domain": self.website_domain,
            "title": self.website_title,
        }


# =============================================================================
# WEBSITE DATA CACHE
# =============================================================================

class DomainOverviewCache(Base):
    """Traffic, keyword counts and ranking distribution (24 h)."""
    __tablename__ = "domain_overview_cache"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    website_id = Column(UUID(as_uuid=True), ForeignKey("user_websites.id", ondelete="CASCADE"), nullable=False)
    location_code = Column(Integer, nullable=False, default=2840)

    # Traffic
    organic_traffic = Column(Numeric(14, 2), default=0)
    paid_traffic = Column(Numeric(14, 2), default=0)
    total_traffic = Column(Numeric(14, 2), default=0)

    # Keywords
    total_keywords = Column(Integer, default=0)
    new_keywords = Column(Integer, default=0)
    lost_keywords = Column(Integer, default=0)
    improved_keywords = Column(Integer, default=0)
    declined_keywords = Column(Integer, default=0)

    # Rankings
    avg_position = Column(Numeric(6, 2), default=0)
    traffic_cost = Column(Numeric(14, 2), default=0)
    top3_count = Column(Integer, default=0)
    top10_count = Column(Integer, default=0)
    top50_count = Column(Integer, default=0)
    top100_count = Column(Integer, default=0)

    backlinks_info = Column(JSONType)

    # Cache control
    data_date = Column(Date, default=lambda: datetime.utcnow().date(), nullable=False)
    data_updated_at = Column(DateTime, default=datetime.utcnow)
    cache_expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("website_id", "data_date", "location_code", name="unique_website_overview_date"),
        Index("idx_domain_overview_website", "website_id"),
        Index("idx_domain_overview_expires", "cache_expires_at"),
    )


class DomainKeywordsCache(Base):
    """Top keywords a website ranks for (24 h)."""
    __tablename__ = "domain_keywords_cache"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    website_id = Column(UUID(as_uuid=True), ForeignKey("user_websites.id", ondelete="CASCADE"), nullable=False)
    location_code = Column(Integer, nullable=False, default=2840)

    keyword = Column(String(500), nullable=False)
    current_position = Column(Integer, default=0)
    previous_position = Column(Integer, default=0)
    position_change = Column(Integer, default=0)
    search_volume = Column(Integer, default=0)
    cpc = Column(Numeric(10, 2))
    competition = Column(Numeric(10, 2))
    difficulty = Column(Integer)
    traffic_percentage = Column(Numeric(10, 2))
    ranking_url = Column(String(1000))

    data_updated_at = Column(DateTime, default=datetime.utcnow)
    cache_expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("website_id", "keyword", "location_code", name="unique_website_domain_keyword"),
        Index("idx_domain_keywords_website", "website_id"),
        Index("idx_domain_keywords_expires", "cache_expires_at"),
    )


class DomainCompetitorsCache(Base):
    """Competitor domains (7 days)."""
    __tablename__ = "domain_competitors_cache"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    website_id = Column(UUID(as_uuid=True), ForeignKey("user_websites.id", ondelete="CASCADE"), nullable=False)
    location_code = Column(Integer, nullable=False, default=2840)

    competitor_domain = Column(String(255), nullable=False)
    competitor_title = Column(String(500))
    common_keywords = Column(Integer, default=0)
    organic_traffic = Column(Integer, default=0)
    total_keywords = Column(Integer, default=0)
    gap_keywords = Column(Integer, default=0)
    gap_traffic = Column(Integer, default=0)

    data_updated_at = Column(DateTime, default=datetime.utcnow)
    cache_expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("website_id", "competitor_domain", "location_code", name="unique_website_competitor"),
        Index("idx_domain_competitors_website", "website_id"),
        Index("idx_domain_competitors_expires", "cache_expires_at"),
    )


class RankedKeywordsCache(Base):
    """Ranked keywords with SERP features (24 h)."""
    __tablename__ = "ranked_keywords_cache"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    website_id = Column(UUID(as_uuid=True), ForeignKey("user_websites.id", ondelete="CASCADE"), nullable=False)
    location_code = Column(Integer, nullable=False, default=2840)

    keyword = Column(String(500), nullable=False)
    current_position = Column(Integer)
    previous_position = Column(Integer)
    search_volume = Column(Integer)
    etv = Column(Numeric(14, 2))
    serp_features = Column(JSONType)
    ranking_url = Column(String(1000))
    cpc = Column(Numeric(10, 2))
    competition = Column(Numeric(10, 2))
    difficulty = Column(Integer)

    data_updated_at = Column(DateTime, default=datetime.utcnow)
    cache_expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("website_id", "keyword", "location_code", name="unique_website_ranked_keyword"),
        Index("idx_ranked_keywords_website", "website_id"),
        Index("idx_ranked_keywords_expires", "cache_expires_at"),
    )


class DomainKeywordRecommendationsCache(Base):
    """LLM keyword recommendation report, one per website (24 h)."""
    __tablename__ = "domain_keyword_recommendations_cache"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    website_id = Column(
        UUID(as_uuid=True),
        ForeignKey("user_websites.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    analysis_result = Column(JSONType, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_keyword_recommendations_expires", "expires_at"),
    )


# =============================================================================
# WORKFLOW CONFIGS
# =============================================================================

class WorkflowConfig(Base):
    """User-owned prompt overrides for the agent nodes of one workflow."""
    __tablename__ = "workflow_configs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    workflow_id = Column(String(50), nullable=False)  # mining, batch, deepDive
    name = Column(String(255), nullable=False)
    nodes = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_workflow_configs_user", "user_id"),
        Index("idx_workflow_configs_workflow", "user_id", "workflow_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "workflowId": self.workflow_id,
            "name": self.name,
            "createdAt": to_epoch_ms(self.created_at),
            "updatedAt": to_epoch_ms(self.updated_at),
            "nodes": self.nodes or [],
        }
