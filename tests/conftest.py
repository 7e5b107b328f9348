"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules:
an in-memory SQLite database, user/website factories, a scripted Gemini
client and a FastAPI TestClient wired to both.
"""

import json
from typing import Any, Dict, List, Optional, Union
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.analyzer.client import GeminiResponse, TokenUsage
from src.auth.config import AuthConfig
from src.auth.models import User
from src.database.models import UserWebsite
from src.database.session import init_db


# ============================================================================
# Helpers
# ============================================================================

def gemini_response(payload: Union[str, Dict, List], model: str = "gemini-2.5-flash") -> GeminiResponse:
    """Build a GeminiResponse; dicts and lists are serialized to JSON."""
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return GeminiResponse(text=text, model=model, usage=TokenUsage(input_tokens=10, output_tokens=20))


def make_gemini(*responses: Any) -> MagicMock:
    """
    Gemini client mock.

    With one response every call returns it; with several they are
    returned in order. Exceptions in the list are raised.
    """
    client = MagicMock()
    client.model = "gemini-2.5-flash"
    scripted = [r if isinstance(r, (GeminiResponse, Exception)) else gemini_response(r) for r in responses]
    if len(scripted) == 1:
        if isinstance(scripted[0], Exception):
            client.generate = AsyncMock(side_effect=scripted[0])
        else:
            client.generate = AsyncMock(return_value=scripted[0])
    else:
        client.generate = AsyncMock(side_effect=scripted)
    client.generate_image = AsyncMock(return_value="https://img.example.com/1.png")
    client.close = AsyncMock()
    return client


def make_clients(
    gemini: Optional[MagicMock] = None,
    serp: Any = None,
    seranking: Any = None,
    firecrawl: Any = None,
    dataforseo: Any = None,
) -> MagicMock:
    """ExternalAPIClients stand-in with only the given upstreams configured."""
    clients = MagicMock()
    clients.gemini = gemini or make_gemini("{}")
    clients.serp = serp
    clients.seranking = seranking
    clients.firecrawl = firecrawl
    clients.dataforseo = dataforseo
    clients.close = AsyncMock()
    return clients


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (TestClient runs in a worker thread)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Session bound to the in-memory database."""
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session):
    """Factory for local users."""
    def _make(email: Optional[str] = None, is_active: bool = True) -> User:
        user = User(id=uuid4(), email=email or f"{uuid4().hex[:8]}@test.com", is_active=is_active)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def user(make_user):
    return make_user(email="owner@test.com")


@pytest.fixture
def make_website(db_session):
    """Factory for tracked websites."""
    def _make(owner: User, domain: Optional[str] = "example.com") -> UserWebsite:
        website = UserWebsite(
            id=uuid4(),
            user_id=owner.id,
            website_url=f"https://{domain}" if domain else "https://unknown",
            website_domain=domain,
            website_title="Example",
        )
        db_session.add(website)
        db_session.commit()
        return website
    return _make


@pytest.fixture
def website(make_website, user):
    return make_website(user)


# ============================================================================
# Auth
# ============================================================================

@pytest.fixture
def auth_config():
    """Auth config with a known secret."""
    return AuthConfig(
        jwt_secret="super-secret-jwt-key-for-testing",
        jwt_algorithm="HS256",
        auth_enabled=True,
    )


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def gemini():
    return make_gemini("{}")


@pytest.fixture
def clients(gemini):
    return make_clients(gemini)


@pytest.fixture
def app(db_session, clients):
    """FastAPI app using the test database and mocked upstream clients."""
    from api.app import app
    from api.dependencies import get_clients
    from src.database.session import get_db

    def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_clients] = lambda: clients
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """TestClient without lifespan, so the startup hook never touches a real database."""
    from fastapi.testclient import TestClient

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def authed_client(app, client, user):
    """TestClient whose requests authenticate as `user`."""
    from src.auth.dependencies import get_current_user

    app.dependency_overrides[get_current_user] = lambda: user
    return client
