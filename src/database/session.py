"""
Database Session Management

Handles connection pooling, session lifecycle, and database initialization.
Designed for PostgreSQL in production and SQLite for local development.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from src.utils.config import get_settings

from .models import Base

logger = logging.getLogger(__name__)

# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def _normalize_url(url: str) -> str:
    # SQLAlchemy needs postgresql://, hosted Postgres often hands out postgres://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url() -> str:
    """
    Get database URL from environment.

    Priority:
    1. DATABASE_URL
    2. POSTGRES_URL
    3. SQLite fallback for local development
    """
    url = os.getenv("DATABASE_URL")
    if url:
        logger.info("Using PostgreSQL database from DATABASE_URL")
        return _normalize_url(url)

    url = os.getenv("POSTGRES_URL")
    if url:
        logger.info("Using PostgreSQL database from POSTGRES_URL")
        return _normalize_url(url)

    sqlite_path = os.getenv("SQLITE_PATH", "niche_mining_dev.db")
    logger.warning(f"No DATABASE_URL found, using SQLite: {sqlite_path}")
    return f"sqlite:///{sqlite_path}"


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def create_db_engine(url: str = None):
    """
    Create database engine with appropriate settings.

    PostgreSQL: pool sized from DB_POOL_MIN / DB_POOL_MAX
    SQLite: no pooling options, foreign key support
    """
    url = url or get_database_url()
    echo = os.getenv("SQL_DEBUG", "false").lower() == "true"

    if is_postgres_url(url):
        settings = get_settings()
        pool_size = max(settings.DB_POOL_MIN, 1)
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max(settings.DB_POOL_MAX - pool_size, 0),
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=echo,
        )
        logger.info(f"Created PostgreSQL engine (pool {pool_size}..{settings.DB_POOL_MAX})")
    else:
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        logger.info("Created SQLite engine")

    return engine


# Global engine (lazy initialization)
_engine = None


def get_engine():
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

_SessionLocal = None


def get_session_factory():
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI-style dependency for database sessions.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_db_context() as db:
            db.query(Item).all()
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_db(engine=None) -> None:
    """
    Create all tables that do not exist yet.

    Idempotent: create_all only issues CREATE TABLE for missing tables.
    """
    # users / api_keys are declared in the auth package on the same Base
    from src.auth import models as auth_models  # noqa: F401

    engine = engine or get_engine()
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def get_db_info() -> dict:
    """
    Connection status and table list for the /api/database endpoint.

    The password is masked in the returned URL.
    """
    url = make_url(get_database_url())
    info = {
        "database_type": "postgresql" if url.get_backend_name() == "postgresql" else "sqlite",
        "connection_url": url.render_as_string(hide_password=True),
        "connected": False,
        "table_count": 0,
        "tables": [],
    }

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        info["connected"] = True
        info["tables"] = sorted(inspect(engine).get_table_names())
        info["table_count"] = len(info["tables"])
    except SQLAlchemyError as e:
        info["error"] = str(e)

    return info


def check_db_connection() -> bool:
    """True when a trivial query succeeds."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
