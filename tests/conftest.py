"""Shared pytest fixtures and configuration.

This module provides common fixtures used across all test types.
"""

import os
import tempfile
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("AUTH_SECRET", "test-auth-secret")
os.environ.setdefault("ADMIN_SESSION_SECRET", "test-admin-session-secret")
os.environ.setdefault("TWO_FACTOR_ENCRYPTION_KEY", "test-two-factor-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

# Import models to register them with Base.metadata
import duely.models  # noqa: E402, F401
from duely.api.middleware.rate_limiter import (  # noqa: E402
    admin_login_rate_limiter,
    login_rate_limiter,
)
from duely.models.base import Base  # noqa: E402
from duely.models.user import UserDB, UserSettingsDB  # noqa: E402
from duely.services.database import enable_sqlite_foreign_keys  # noqa: E402
from duely.services.maintenance import clear_maintenance_cache  # noqa: E402


@pytest.fixture(scope="session")
def test_database_url() -> str:
    """Provide test database URL.

    Uses file-based SQLite for testing to avoid in-memory connection issues,
    or PostgreSQL if configured.
    """
    db_url = os.getenv("TEST_DATABASE_URL")

    if db_url:
        return db_url
    return f"sqlite+aiosqlite:///{tempfile.gettempdir()}/test_duely.db"


@pytest.fixture(scope="function")
async def async_db_session(test_database_url: str) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session for testing.

    Creates tables before each test and drops them after.
    """
    engine = create_async_engine(
        test_database_url,
        echo=False,
        future=True,
    )

    if engine.dialect.name == "sqlite":
        enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async_session_factory = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_process_state():
    """Maintenance flag cache and rate limiter buckets live in the process."""
    clear_maintenance_cache()
    login_rate_limiter.reset()
    admin_login_rate_limiter.reset()
    yield
    clear_maintenance_cache()


async def create_user(
    session: AsyncSession,
    email: str = "jane@example.com",
    username: str = "jane",
    plan: str = "free",
    status: str = "active",
    currency: str = "IDR",
    created_at: datetime | None = None,
    **fields,
) -> UserDB:
    """Insert a user with settings directly, skipping password hashing."""
    user = UserDB(
        id=uuid.uuid4(),
        name=fields.pop("name", "Jane Doe"),
        username=username,
        email=email,
        subscription_plan=plan,
        subscription_status=status,
        created_at=created_at or datetime.utcnow(),
        updated_at=created_at or datetime.utcnow(),
        **fields,
    )
    session.add(user)
    session.add(UserSettingsDB(user_id=user.id, currency=currency))
    await session.commit()
    return user


@pytest.fixture
def user_factory(async_db_session: AsyncSession):
    """Callable creating users in the test session."""

    async def factory(**kwargs) -> UserDB:
        return await create_user(async_db_session, **kwargs)

    return factory


@pytest.fixture
async def test_user(async_db_session: AsyncSession) -> UserDB:
    """A free-plan user with IDR display currency."""
    return await create_user(async_db_session)


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


pytest_plugins = ("pytest_asyncio",)
