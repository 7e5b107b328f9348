"""
API Endpoints for Database Migrations

Idempotent; safe to call after every deploy.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter

from src.database.migrations import run_migrations, WEBSITE_DATA_TABLES, INIT_TABLES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/migrations", tags=["Migrations"])


def _summary(results: List[Dict[str, Any]], message: str) -> Dict[str, Any]:
    failed = [r for r in results if r["status"] == "error"]
    return {
        "success": not failed,
        "message": message if not failed else f"{len(failed)} statement(s) failed",
        "results": results,
    }


@router.post("/website-data")
async def migrate_website_data() -> Dict[str, Any]:
    """Create the user_websites table and the website data cache tables."""
    logger.info("Running website data migrations...")
    return _summary(run_migrations(WEBSITE_DATA_TABLES), "Website data tables are up to date")


@router.post("/init")
async def migrate_init() -> Dict[str, Any]:
    """Create every table the service uses."""
    logger.info("Running full schema initialization...")
    return _summary(run_migrations(INIT_TABLES), "Database initialized")
