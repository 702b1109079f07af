"""
Shared fixtures for the Conduit test suite.

The suite runs against an in-memory SQLite database through aiosqlite,
so no PostgreSQL server is needed:

- One connection is shared by every session (``StaticPool``); an
  in-memory database lives and dies with its connection.
- ``configure_sqlite_engine`` enforces foreign keys and lets
  ``begin_nested()`` issue real SAVEPOINTs, which the services rely on
  for cascading deletes and idempotent inserts.
- The schema is created before and dropped after every test.
- HTTP tests reach the app through ``ASGITransport`` with ``get_db``
  pointed at the test session factory.

Service tests use ``db_session`` and never commit.
"""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from conduit.config import settings
from conduit.database import Base, configure_sqlite_engine, get_db
from conduit.main import app

# Minimum bcrypt cost keeps registration fast.
settings.BCRYPT_ROUNDS = 4


def _make_engine() -> AsyncEngine:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_engine(engine)
    return engine


engine_test = _make_engine()
session_factory = async_sessionmaker(engine_test, class_=AsyncSession, expire_on_commit=False)


async def _test_db():
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest_asyncio.fixture(autouse=True)
async def schema():
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A session for calling services directly; rolled back on close."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    app.dependency_overrides[get_db] = _test_db
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
