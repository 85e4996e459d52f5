"""Shared test fixtures for async database, sessions, settings, and auth tokens."""

import uuid
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from schools_api.core.config import Settings
from schools_api.core.security import create_access_token, hash_password
from schools_api.models.base import Base
from schools_api.models.user import User

_HEADERED_CSV = (
    "SCHOOL_YEAR,ST,STATENAME,SCH_NAME,NCESSCH,LEAID,LEA_NAME,LCITY,SY_STATUS_TEXT,LAT,LON\n"
    "2023-2024,GA,GEORGIA,Alpha Elementary,130000100001,1300001,Sample County Schools,Macon,Open,32.84,-83.63\n"
    "2023-2024,GA,GEORGIA,Beta Middle,130000100002,1300001,Sample County Schools,Macon,Open,32.85,-83.64\n"
)


@pytest.fixture
def headered_csv() -> str:
    """A two-row headered school CSV whose schools share one district."""
    return _HEADERED_CSV


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret-key-not-for-production",
        jwt_algorithm="HS256",
        jwt_access_token_expire_minutes=30,
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def sample_user(async_session: AsyncSession) -> User:
    """Create a sample import admin user in the test database."""
    user = User(
        id=uuid.uuid4(),
        username="testadmin",
        email="admin@test.com",
        hashed_password=hash_password("testpassword123"),
        role="system_admin",
        is_active=True,
    )
    async_session.add(user)
    await async_session.commit()
    await async_session.refresh(user)
    return user


@pytest.fixture
def admin_token(settings: Settings) -> str:
    """Generate a JWT access token for an import admin."""
    return create_access_token(
        subject="testadmin",
        role="system_admin",
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
