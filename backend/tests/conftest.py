"""
VetPintar Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock database session (no real DB needed)
    ├── make_result:     Builds the object returned by `await db.execute(...)`
    ├── staff_user / super_admin: CurrentUser instances
    ├── clinic_ctx:      ClinicContext for staff_user in a random clinic
    └── test_client:     HTTPX AsyncClient on a fresh app (own rate limiter,
                         DB session dependency replaced by mock_db_session)
"""

import os

# Override settings for testing BEFORE any vetpintar imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["JWT_SECRET"] = "test-access-secret-not-for-production"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-not-for-production"
os.environ["AI_SERVICE_URL"] = "http://ai.test"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from typing import Any, Iterable, Optional
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vetpintar.dependencies import ClinicContext, CurrentUser
from vetpintar.models.enums import AccessRole, UserRole


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get_patient(mock_db_session, make_result):
            mock_db_session.execute.return_value = make_result(scalar=patient)
            await patient_service.get_patient(mock_db_session, patient.id, clinic_id)

    Several queries in one call: assign a list to execute.side_effect.
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.info = {}
    return session


def _result(
    scalar: Any = None,
    scalars: Optional[Iterable[Any]] = None,
    rows: Optional[Iterable[Any]] = None,
    count: Optional[int] = None,
) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalar_one.return_value = count if count is not None else scalar
    result.scalar.return_value = count if count is not None else scalar
    result.scalars.return_value.all.return_value = list(scalars or [])
    result.scalars.return_value.first.return_value = (list(scalars)[0] if scalars else None)
    result.all.return_value = list(rows or [])
    result.one.return_value = (list(rows)[0] if rows else None)
    return result


@pytest.fixture
def make_result():
    """
    Factory for fake SQLAlchemy Result objects.

        make_result(scalar=obj)        → scalar_one_or_none() / scalar()
        make_result(scalars=[a, b])    → scalars().all()
        make_result(rows=[(x, 1)])     → all() / one()
        make_result(count=3)           → scalar() / scalar_one()
    """
    return _result


@pytest.fixture
def staff_user():
    return CurrentUser(
        id=uuid4(), email="staff@vetpintar.id", role=UserRole.STAFF, clinic_id=uuid4()
    )


@pytest.fixture
def super_admin():
    return CurrentUser(id=uuid4(), email="root@vetpintar.id", role=UserRole.SUPER_ADMIN)


@pytest.fixture
def clinic_ctx(staff_user):
    return ClinicContext(
        user=staff_user, clinic_id=staff_user.clinic_id, access_role=AccessRole.STAFF
    )


@pytest_asyncio.fixture
async def test_client(mock_db_session):
    """
    Provides an async HTTP test client for endpoint testing.

    A new app is built per test so rate limiter state never leaks between
    tests. Route tests add their own `app.dependency_overrides` through
    `test_client.app`.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/api/health")
            assert response.status_code == 200
    """
    from vetpintar.database import get_db_session
    from vetpintar.main import create_app

    app = create_app()

    async def _session_override():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = _session_override
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        client.app = app
        yield client
    app.dependency_overrides.clear()
