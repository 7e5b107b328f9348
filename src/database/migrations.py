"""
Idempotent Schema Migrations

Creates tables and indexes with IF NOT EXISTS, one statement per
transaction, so a partially migrated database can be re-run safely.
Each statement reports its own status.
"""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.schema import CreateIndex, CreateTable

from .models import Base
from .session import get_engine

logger = logging.getLogger(__name__)

WEBSITE_DATA_TABLES = (
    "user_websites",
    "domain_overview_cache",
    "domain_keywords_cache",
    "domain_competitors_cache",
    "ranked_keywords_cache",
    "domain_keyword_recommendations_cache",
)

# Dependency order: users first, then tables referencing them
INIT_TABLES = (
    "users",
    "api_keys",
    *WEBSITE_DATA_TABLES,
    "workflow_configs",
)


def _statements(table_names: Sequence[str]) -> List[tuple]:
    from src.auth import models as auth_models  # noqa: F401  registers users / api_keys

    statements = []
    for name in table_names:
        table = Base.metadata.tables[name]
        statements.append((f"CREATE TABLE {name}", CreateTable(table, if_not_exists=True)))
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append((f"CREATE INDEX {index.name}", CreateIndex(index, if_not_exists=True)))
    return statements


def run_migrations(table_names: Sequence[str], engine=None) -> List[Dict[str, Optional[str]]]:
    """
    Create the given tables and their indexes if missing.

    Returns:
        One {statement, status, error?} entry per statement; status is
        "success" or "error". A failed statement does not stop the rest.
    """
    engine = engine or get_engine()
    results = []
    for label, statement in _statements(table_names):
        try:
            with engine.begin() as conn:
                conn.execute(statement)
            results.append({"statement": label, "status": "success"})
        except Exception as e:
            logger.error(f"Migration statement failed ({label}): {e}")
            results.append({"statement": label, "status": "error", "error": str(e)})

    succeeded = sum(1 for r in results if r["status"] == "success")
    logger.info(f"Migrations: {succeeded}/{len(results)} statements succeeded")
    return results
