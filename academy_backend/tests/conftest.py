"""
Shared pytest configuration for backend tests.

By default each test gets a fresh SQLite database file (aiosqlite). Set
TEST_DATABASE_URL to run against PostgreSQL instead.

SAFETY: a PostgreSQL URL is REFUSED unless the database name contains the
substring "test", so a misconfigured environment cannot drop the
development or production database.
"""

import os

# Rate limiting is disabled when ENV=test; must be set before the app is imported
os.environ.setdefault("ENV", "test")

import asyncio  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from academy_backend.database.db import Base  # noqa: E402
from academy_backend.database.models import Academy, User, UserRole  # noqa: E402


def _resolve_test_database_url(tmp_path) -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if a server database URL does not point to a
    database whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL", "")
    if not url:
        return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"

    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"SAFETY: Refusing to run tests against database '{db_name}'. "
            f"The database name must contain 'test'. Resolved URL: {url}"
        )
    return url


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with all tables."""
    # NullPool avoids reusing connections across event loops
    engine = create_async_engine(
        _resolve_test_database_url(tmp_path),
        echo=False,
        poolclass=NullPool,
    )
    if engine.dialect.name == "sqlite":
        # SQLite ignores foreign keys unless enabled per connection
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions via db.AsyncSessionLocal() (the
    # cleanup sweeper, deferred deletion) must hit the test database too
    from academy_backend.database import db

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    yield engine

    db.AsyncSessionLocal = original_async_session_local

    try:
        await asyncio.sleep(0.05)  # let background tasks release connections
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


async def make_academy(session, name="Al Wehdat Academy", **kwargs) -> Academy:
    academy = Academy(name=name, **kwargs)
    session.add(academy)
    await session.flush()
    return academy


async def make_user(session, name, role=UserRole.USER.value, academy_id=None) -> dict:
    """Insert a user and return the principal dict the API would build for it."""
    email = f"{name.lower().replace(' ', '.')}@example.com"
    user = User(
        name=name,
        email=email,
        password_hash="hashed",
        role=role,
        academy_id=academy_id,
    )
    session.add(user)
    await session.flush()
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": None,
        "role": role,
        "academy_id": academy_id,
    }


@pytest_asyncio.fixture
async def academies(db_session):
    """Two academies, A and B."""
    academy_a = await make_academy(db_session, "Academy A")
    academy_b = await make_academy(db_session, "Academy B")
    await db_session.commit()
    return academy_a, academy_b


@pytest_asyncio.fixture
async def principals(db_session, academies):
    """Academy accounts for A and B, a regular user and an admin."""
    academy_a, academy_b = academies
    result = {
        "a": await make_user(db_session, "Coach A", UserRole.ACADEMY.value, academy_a.id),
        "b": await make_user(db_session, "Coach B", UserRole.ACADEMY.value, academy_b.id),
        "user": await make_user(db_session, "Player One"),
        "admin": await make_user(db_session, "Admin", UserRole.ADMIN.value),
    }
    await db_session.commit()
    return result
