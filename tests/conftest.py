"""
Pytest configuration and fixtures for StockTrail tests.
"""

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.api.main import create_app
from stocktrail.api.dependencies import (
    Settings,
    create_tables,
    dispose_database,
    get_session_factory,
    init_database,
)
from stocktrail.identity import IdentityService
from stocktrail.security import create_access_token
from stocktrail.storage.models import Classification, Committee, ItemType, Unit

TEST_SECRET = "test-secret-key"

SUPERADMIN_EMAIL = "root@committee.org"
ADMIN_EMAIL = "admin@committee.org"
MEMBER_EMAIL = "member@committee.org"
PASSWORD = "correct-horse"


# =============================================================================
# Test Settings
# =============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'stocktrail-test.db'}",
        database_echo=False,
        secret_key=TEST_SECRET,
        environment="test",
        debug=True,
    )


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def database(test_settings):
    """Initialise the engine and schema for one test."""
    init_database(test_settings)
    await create_tables()

    yield get_session_factory()

    await dispose_database()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests."""
    async with database() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def references(database) -> dict:
    """Committee, unit and one type of each classification."""
    async with database() as session:
        committee = Committee(name="Logistics")
        unit = Unit(name="pcs")
        equipment = ItemType(name="Equipment", classification=Classification.ASSET)
        supplies = ItemType(name="Office Supplies", classification=Classification.CONSUMABLE)
        session.add_all([committee, unit, equipment, supplies])
        await session.commit()

        return {
            "committee_id": committee.id,
            "unit_id": unit.id,
            "asset_type_id": equipment.id,
            "consumable_type_id": supplies.id,
        }


# =============================================================================
# User Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def users(database) -> dict:
    """
    One Active account per role.

    The Superadmin is bootstrapped; the Admin and User go through the
    regular create + first-login activation path.
    """
    async with database() as session:
        identity = IdentityService(session)
        superadmin = await identity.bootstrap_superadmin("Root Admin", SUPERADMIN_EMAIL, PASSWORD)

        admin = await identity.create_user(superadmin, "Ada Admin", ADMIN_EMAIL, "Admin", "temp-1")
        member = await identity.create_user(superadmin, "Mia Member", MEMBER_EMAIL, "User", "temp-2")
        admin = await identity.complete_first_login(admin.id, PASSWORD)
        member = await identity.complete_first_login(member.id, PASSWORD)

    return {"superadmin": superadmin, "admin": admin, "user": member}


@pytest.fixture
def auth_headers(users) -> dict:
    """Bearer headers keyed by role."""

    def headers_for(user):
        token = create_access_token(
            {"sub": str(user.id)},
            secret_key=TEST_SECRET,
            expires_delta=timedelta(minutes=30),
        )
        return {"Authorization": f"Bearer {token}"}

    return {role: headers_for(user) for role, user in users.items()}


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def app(test_settings, database):
    """FastAPI application bound to the test database."""
    application = create_app(test_settings)

    yield application

    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
