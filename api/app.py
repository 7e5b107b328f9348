"""
Niche Mining Engine API

FastAPI app serving the keyword mining dashboard:
1. Keyword mining, ranking analysis and batch translation
2. Deep dive strategy reports
3. Visual article generation (SSE)
4. Website data dashboard (cached DataForSEO data)
5. Workflow configurations
6. Health, database and proxy status, migrations
"""

import logging
import sys
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.analyzer.context import RequestContext
from src.auth.dependencies import AuthError
from src.database import init_db, check_db_connection, get_db_info
from src.integrations import ExternalAPIConfig
from src.utils.config import get_settings

from . import deep_dive, keywords, migrations, visual_article, website_data, workflow_configs
from .dependencies import get_request_context

VERSION = "1.0.0"

# Configure logging to stdout (platforms treat stderr as errors)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,  # Explicitly use stdout
    force=True,  # Override any existing config
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Create FastAPI app
app = FastAPI(
    title="Niche Mining Engine",
    description="Keyword mining, ranking analysis and SEO content generation powered by Gemini",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Proxy-Provider", "X-Gemini-Model"],
)

app.include_router(keywords.router)
app.include_router(deep_dive.router)
app.include_router(visual_article.router)
app.include_router(website_data.router)
app.include_router(workflow_configs.router)
app.include_router(migrations.router)

PROVIDERS = [
    {"id": "302", "name": "302.ai", "description": "302.ai relay"},
    {"id": "tuzi", "name": "Tu-Zi", "description": "Tu-Zi relay"},
]

MODELS = [
    {"id": "gemini-2.5-flash", "name": "Gemini 2.5 Flash", "description": "Fast and stable"},
    {"id": "gemini-3-flash-preview", "name": "Gemini 3 Flash Preview", "description": "Latest preview"},
]


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Keyword mining and deep dive work without a database

    ExternalAPIConfig().log_status()


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Missing required fields", "details": details})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": str(exc) or "Internal server error", "type": type(exc).__name__},
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Niche Mining Engine"}


@app.get("/api/health")
async def health():
    """Detailed health check including database status."""
    settings = get_settings()
    try:
        db_connected = check_db_connection()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        db_connected = False

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": VERSION,
        "database": "connected" if db_connected else "disconnected",
        "environment": {
            "GEMINI_API_KEY": "set" if settings.GEMINI_API_KEY else "missing",
            "GEMINI_PROXY_URL": settings.GEMINI_PROXY_URL,
            "GEMINI_MODEL": settings.GEMINI_MODEL,
            "ENVIRONMENT": settings.ENVIRONMENT,
        },
    }


@app.get("/api/database")
async def database_status():
    """
    Get detailed database status.

    Returns:
        - Database type (postgresql/sqlite)
        - Connection status
        - Tables created
    """
    try:
        db_info = get_db_info()
        return {
            "status": "ok" if db_info["connected"] else "error",
            "database_type": db_info["database_type"],
            "connected": db_info["connected"],
            "table_count": db_info["table_count"],
            "tables": db_info["tables"],
            "connection_url": db_info["connection_url"],
            "error": db_info.get("error"),
        }
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
        }


@app.get("/api/proxy-status")
async def proxy_status(context: RequestContext = Depends(get_request_context)):
    """Available Gemini proxy providers and models, and this request's selection."""
    settings = get_settings()
    provider = context.proxy_provider or "302"
    has_key = {
        "302": bool(settings.GEMINI_API_KEY),
        "tuzi": bool(settings.GEMINI_TUZI_API_KEY or settings.GEMINI_API_KEY),
    }
    base_urls = {"302": settings.GEMINI_PROXY_URL, "tuzi": settings.GEMINI_TUZI_PROXY_URL}

    return {
        "providers": [
            {**p, "baseUrl": base_urls[p["id"]], "hasApiKey": has_key[p["id"]]}
            for p in PROVIDERS
        ],
        "models": MODELS,
        "current": {
            "provider": provider,
            "model": context.model or settings.GEMINI_MODEL,
        },
    }


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
