"""
Natours Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own Settings, an in-memory SQLite Database
       (aiosqlite, tables created from the ORM metadata) and an app built
       with create_app(settings, database). Requests go through httpx's
       ASGITransport, so the full pipeline runs without a socket.

Fixture Hierarchy:
    settings            production-mode Settings (no .env file)
    ├── database        in-memory SQLite, tables created
    │   ├── app         create_app(settings, database)
    │   │   └── client  httpx AsyncClient over ASGITransport
    │   ├── make_user   insert a user with a role
    │   └── make_tour   insert a tour
    └── auth_headers    Bearer header for a user
"""

import os
from typing import Any, Dict
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from natours.config import Settings
from natours.database import Database
from natours.main import create_app
from natours.models import Tour, User
from natours.models.tour import slugify
from natours.services.auth_service import sign_token

os.environ["LOG_LEVEL"] = "WARNING"

TEST_DATABASE_URL = "sqlite+aiosqlite://"
PASSWORD = "pass1234"
WEBHOOK_SECRET = "test-webhook-secret"


def build_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "app_env": "production",
        "database": TEST_DATABASE_URL,
        "jwt_secret": "test-jwt-secret",
        "payment_webhook_secret": WEBHOOK_SECRET,
        "public_base_url": "http://test",
        "trust_proxy": True,
        "port": 0,
        "host": "127.0.0.1",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def tour_payload(**overrides: Any) -> Dict[str, Any]:
    """A valid tour body as the API receives it (camelCase)."""
    payload = {
        "name": "The Forest Hiker",
        "duration": 5,
        "maxGroupSize": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "imageCover": "tour-1-cover.jpg",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings() -> Settings:
    return build_settings()


@pytest_asyncio.fixture
async def database():
    db = Database(TEST_DATABASE_URL)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def app(settings, database):
    return create_app(settings, database)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_user(database):
    async def _make(role: str = "user", email: str = None, name: str = "Test User",
                    password: str = PASSWORD, active: bool = True) -> User:
        async with database.session() as session:
            user = User(
                name=name,
                email=email or f"{role}-{uuid4().hex[:8]}@natours.io",
                role=role,
                active=active,
            )
            user.set_password(password)
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_tour(database):
    async def _make(**overrides: Any) -> Tour:
        values = {
            "name": f"Tour {uuid4().hex[:12]}",
            "duration": 5,
            "max_group_size": 10,
            "difficulty": "easy",
            "price": 500.0,
            "summary": "A tour",
            "image_cover": "cover.jpg",
            "images": [],
            "start_dates": [],
        }
        values.update(overrides)
        async with database.session() as session:
            tour = Tour(slug=slugify(values["name"]), **values)
            session.add(tour)
            await session.commit()
            return tour

    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {sign_token(user.id, settings)}"}

    return _headers
