"""
Global test fixtures and configuration.

This module provides base fixtures for all tests:
- Isolated in-memory database per test
- Fake Docker engine (MagicMock client behind the real EngineConnector)
- HTTP client with dependency overrides
- Base data fixtures (user, admin_user, auth_headers, organization, node)
"""

import os
import pytest
from typing import AsyncGenerator
from unittest.mock import MagicMock
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Set test environment variables BEFORE importing app
os.environ["MODE"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SENTRY_DSN"] = ""

from dockmanager.main import app
from dockmanager.api.dependencies import get_db, get_engine_connector
from dockmanager.db.base import Base
from dockmanager.db.session import build_engine
from dockmanager.services.docker_engine import ConnectionStrategy, EngineConnector

TEST_DATABASE_URL = os.environ["DATABASE_URL"]


# ==================== Database ====================

@pytest.fixture(scope="function")
async def test_engine():
    """
    Fresh in-memory database for each test.

    Tables are created up front; the database disappears with the engine.
    """
    engine = build_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Session shared by the test body and the app under test.

    Services commit on it, so state written through the API is visible to
    the test without extra plumbing.
    """
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    session = session_factory()

    yield session

    await session.close()


# ==================== Docker engine ====================

class StubStrategy(ConnectionStrategy):
    """Hands out a prepared client instead of dialing an engine."""

    def __init__(self, client):
        self.client = client
        self.builds = 0

    def build(self, profile, timeout, workdir=None):
        self.builds += 1
        return self.client


@pytest.fixture
def docker_client() -> MagicMock:
    """
    Fake DockerClient.

    ping succeeds, prunes reclaim nothing, no containers exist.
    Tests tweak return values / side effects as needed.
    """
    client = MagicMock(name="DockerClient")
    client.ping.return_value = True
    client.containers.prune.return_value = {"ContainersDeleted": [], "SpaceReclaimed": 0}
    client.images.prune.return_value = {"ImagesDeleted": [], "SpaceReclaimed": 0}
    client.volumes.prune.return_value = {"VolumesDeleted": [], "SpaceReclaimed": 0}
    client.networks.prune.return_value = {"NetworksDeleted": []}
    client.api.prune_builds.return_value = {"CachesDeleted": [], "SpaceReclaimed": 0}
    client.containers.list.return_value = []
    client.info.return_value = {}
    return client


@pytest.fixture
def stub_strategy(docker_client) -> StubStrategy:
    return StubStrategy(docker_client)


@pytest.fixture
def engine_connector(stub_strategy) -> EngineConnector:
    """Real connector (error wrapping, auth-method selection) over the fake client."""
    return EngineConnector({"plain": stub_strategy, "tls": stub_strategy})


# ==================== FastAPI Client ====================

@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    engine_connector: EngineConnector
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create HTTP client for testing FastAPI endpoints.

    Overrides get_db and get_engine_connector to use test fixtures.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_engine_connector] = lambda: engine_connector

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Base Data Fixtures ====================

@pytest.fixture
async def user(db_session: AsyncSession):
    """Regular (non-admin) user."""
    from tests.factories.user import UserFactory
    user = await UserFactory.create_async(db_session)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession):
    """
    Create admin user for testing admin-only endpoints.
    """
    from tests.factories.user import UserFactory
    user = await UserFactory.create_async(
        db_session,
        email="admin@test.com",
        name="Admin User",
        role="admin"
    )
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def auth_headers(user):
    """
    Generate authentication headers for authenticated requests.

    Creates a valid JWT token for the user.
    """
    from dockmanager.core.security import create_access_token

    token = create_access_token(
        data={"sub": str(user.id)},
        token_version=user.token_version
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_auth_headers(admin_user):
    """
    Generate authentication headers for admin user.
    """
    from dockmanager.core.security import create_access_token

    token = create_access_token(
        data={"sub": str(admin_user.id)},
        token_version=admin_user.token_version
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def organization(db_session: AsyncSession):
    from tests.factories.organization import OrganizationFactory
    org = await OrganizationFactory.create_async(db_session)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest.fixture
async def node(db_session: AsyncSession, organization):
    """
    Plain (socket) node in the test organization.
    """
    from tests.factories.node import NodeFactory
    node = await NodeFactory.create_async(db_session, organization_id=organization.id)
    await db_session.commit()
    await db_session.refresh(node)
    return node


# ==================== Helper Fixtures ====================

@pytest.fixture
def anyio_backend():
    """
    Configure anyio backend for httpx AsyncClient.
    """
    return "asyncio"
