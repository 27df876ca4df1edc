"""
Test fixtures for the Club Ledger test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory / db_session: Fresh in-memory SQLite
    database for each test
  - client: Async HTTP test client wired to that database
  - fast_retries: Shrinks the conflict backoff so retry tests run instantly
  - make_account: Opens an account through the real service

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database — no state leaks between tests.
  - Both session dependencies (get_db for reads, get_session_factory for
    atomic units) are overridden so the application code works exactly as
    it does in production.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

import club_ledger.models  # noqa: F401
from club_ledger.config import settings
from club_ledger.database import Base, get_db, get_session_factory
from club_ledger.main import app
from club_ledger.models.account import AccountKind
from club_ledger.services import account_service


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine, as services receive it."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide a read session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    Overrides both session dependencies so all requests hit the in-memory
    test database instead of the real one.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def fast_retries(monkeypatch):
    """Keep the retry budget but remove the waiting between attempts."""
    monkeypatch.setattr(settings, "CONFLICT_BACKOFF_SECONDS", 0.0)
    monkeypatch.setattr(settings, "CONFLICT_BACKOFF_MAX_SECONDS", 0.0)
    monkeypatch.setattr(settings, "CONFLICT_BACKOFF_JITTER_SECONDS", 0.0)


@pytest.fixture
def make_account(session_factory):
    """
    Open an account through account_service and return it.

    Usage:
        bank = await make_account("Main Bank", AccountKind.BANK, 1000)
    """

    async def _make(name: str, kind: AccountKind = AccountKind.BANK, initial_balance_cents: int = 0, **kwargs):
        return await account_service.create_account(
            session_factory,
            name=name,
            kind=kind,
            initial_balance_cents=initial_balance_cents,
            **kwargs,
        )

    return _make
