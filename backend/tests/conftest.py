"""
Centralized Test Configuration.
"""

import fnmatch
import os

# Settings are read at import time; point them at the test setup first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.models.enums import UserRole

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "Secure1!pass"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, *keys):
        if self._closed:
            return 0
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                deleted += 1
        return deleted

    async def scan_iter(self, match=None):
        if self._closed:
            raise ConnectionError("Redis connection closed")
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture(autouse=True)
def apply_overrides(mock_redis):
    """Route the app's database, Redis and audit writes to the test doubles."""
    recorder = app.state.audit_recorder
    cache = app.state.cache
    original_factory = recorder.session_factory
    original_client = cache.client
    original_enabled = cache.enabled

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    recorder.session_factory = TestingSessionLocal
    cache.client = mock_redis
    cache.enabled = True
    yield

    # Restore and clear
    app.dependency_overrides = {}
    recorder.session_factory = original_factory
    cache.client = original_client
    cache.enabled = original_enabled


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def auth_services():
    return app.state.auth


@pytest.fixture
def create_user(db_session, auth_services):
    """Factory inserting a user directly through the credential store."""

    async def _create(
        email: str,
        password: str = DEFAULT_PASSWORD,
        role: UserRole = UserRole.EMPLOYEE,
        name: str = "Test User",
        is_active: bool = True,
    ):
        user = await auth_services.store.create_user(db_session, name, email, password, role=role)
        user.is_active = is_active
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def auth_headers(auth_services):
    """Build a bearer header for a user without going through /login."""

    def _headers(user) -> dict:
        tokens = auth_services.issuer.issue_pair(user)
        return {"Authorization": f"Bearer {tokens.access_token}"}

    return _headers


@pytest.fixture
async def admin_user(create_user):
    return await create_user("admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def admin_headers(admin_user, auth_headers):
    return auth_headers(admin_user)


@pytest.fixture
def session_factory():
    """The session factory behind the test database (for code that opens its own sessions)."""
    return TestingSessionLocal
