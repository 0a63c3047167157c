"""
Pharmacy Directory Backend — Test Configuration (conftest.py)
==============================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: AsyncMock session for service unit tests
    ├── sample_pharmacy_payload: A valid camelCase create body
    ├── make_pharmacy: Builds transient Pharmacy rows for mocked queries
    ├── db_engine: In-memory SQLite engine with tables created
    ├── test_app: App from create_app() wired to db_engine
    ├── session_factory: Direct DB access, bypassing the API filters
    └── test_client: HTTPX AsyncClient for endpoint tests
"""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["UNIQUE_EMAIL"] = "false"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pharmacy_directory.config import Settings
from pharmacy_directory.database import Base
from pharmacy_directory.main import create_app
from pharmacy_directory.models.pharmacy import Pharmacy

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ══════════════════════════════════════════════════════════════════════════
# Unit-Test Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = row
        result = await service.get_pharmacy(mock_db_session, str(row.id))
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sample_pharmacy_payload():
    """A complete, valid create body in wire (camelCase) format."""
    return {
        "name": "Harbor Pharmacy",
        "address": {
            "street": "12 Main St",
            "city": "Boston",
            "state": "MA",
            "zipCode": "02108",
            "coordinates": {"latitude": 42.3588, "longitude": -71.0578},
        },
        "phoneNumber": "617-555-0100",
        "email": "Contact@HarborPharmacy.com",
        "website": "https://harborpharmacy.example",
        "licenseNumber": "LIC-1",
        "servicesOffered": ["Prescriptions", "Vaccinations"],
        "openingHours": [
            {"dayOfWeek": 1, "openTime": "09:00", "closeTime": "18:00"},
            {"dayOfWeek": 6, "openTime": "10:00", "closeTime": "14:00"},
        ],
    }


@pytest.fixture
def make_pharmacy():
    """
    Factory for transient Pharmacy rows with every column populated.

    Rows are not attached to a session; they stand in for query results.
    """
    def _make(**overrides) -> Pharmacy:
        now = datetime.now(timezone.utc)
        values = {
            "id": uuid4(),
            "name": "Harbor Pharmacy",
            "address": {
                "street": "12 Main St",
                "city": "Boston",
                "state": "MA",
                "zipCode": "02108",
                "country": "USA",
            },
            "phone_number": "617-555-0100",
            "email": "contact@harborpharmacy.com",
            "website": None,
            "license_number": "LIC-1",
            "services_offered": ["Prescriptions"],
            "opening_hours": [{"dayOfWeek": 1, "openTime": "09:00", "closeTime": "18:00"}],
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return Pharmacy(**values)

    return _make


# ══════════════════════════════════════════════════════════════════════════
# Integration Fixtures (real SQLite database)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine shared by every session in one test.

    StaticPool keeps the single connection alive; without it each new
    connection would see an empty in-memory database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def test_settings():
    return Settings(
        database_url=TEST_DATABASE_URL,
        log_level="WARNING",
        rate_limit_requests=10000,
    )


@pytest.fixture
def test_app(test_settings, db_engine):
    return create_app(test_settings, engine=db_engine)


@pytest.fixture
def session_factory(test_app):
    """Session factory of the app under test, for inspecting stored rows."""
    return test_app.state.session_factory


@pytest_asyncio.fixture
async def test_client(test_app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
