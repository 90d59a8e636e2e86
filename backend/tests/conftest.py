"""
Invoicerr Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (mocked DB, model instances,
       API client) so no test needs PostgreSQL, SMTP or a webhook endpoint.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock async database session (no real DB needed)
    ├── user / admin_user: Real User instances (ids set, never flushed)
    ├── company: Real Company instance with default numbering formats
    ├── client: Real Client instance belonging to `company`
    ├── membership: OWNER membership of `user` in `company`
    └── test_client: HTTPX AsyncClient with auth and DB dependencies overridden
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="invoicerr_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RECURRING_INTERVAL_SECONDS"] = "0"
os.environ["SMTP_HOST"] = ""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.models.company import UserCompany
from app.models.enums import UserRole

from factories import make_client, make_company, make_user, result_with


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get_client(mock_db_session, company, client):
            mock_db_session.execute.return_value = result_with(one=client)
            found = await client_service.get_client(mock_db_session, company, client.id)
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=result_with())
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.delete = AsyncMock()
    session.add = MagicMock()
    session.sync_session = MagicMock(info={})

    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=nested)
    nested.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=nested)
    return session


@pytest.fixture
def company():
    return make_company()


@pytest.fixture
def user():
    return make_user()


@pytest.fixture
def admin_user():
    return make_user(email="root@example.test", is_system_admin=True)


@pytest.fixture
def client(company):
    return make_client(company)


@pytest.fixture
def membership(user, company):
    m = UserCompany(
        id=uuid4(),
        user_id=user.id,
        company_id=company.id,
        role=UserRole.OWNER,
        is_default=True,
        joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    m.user = user
    m.company = company
    return m


@pytest_asyncio.fixture
async def test_client(mock_db_session, user):
    """
    Provides an async HTTP test client for endpoint testing.

    The database session is the mock above and the caller is `user`;
    tests set `app.dependency_overrides` further when they need a
    company context.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from app.database import get_db_session
    from app.guards.auth import get_current_user
    from app.main import app

    async def override_db():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_current_user] = lambda: user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()
