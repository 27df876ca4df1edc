"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request (reads)
  - get_session_factory(): FastAPI dependency that provides the session
    factory itself (writes)

Why two dependencies?
  Every balance-changing operation runs as an optimistic atomic unit that
  may be re-executed after a version conflict (see services/atomic.py).
  Each attempt needs a brand-new session and database transaction, so the
  mutating services receive the factory rather than a single session.
  Read-only endpoints keep the simpler one-session-per-request pattern.
"""

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from club_ledger.config import settings


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False keeps attributes readable after commit; services
# return ORM objects from units whose session has already closed.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a read session.

    Usage in a route:
        @router.get("/accounts")
        async def list_accounts(db: AsyncSession = Depends(get_db)):
            ...

    Rolls back on any exception; reads never need a commit, but the
    session is committed on success so a route mixing reads with ad hoc
    writes still behaves.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency that provides the session factory for atomic units."""
    return AsyncSessionLocal
