"""
Pharmacy Directory Backend — Database Session Management
=========================================================

What:  Async SQLAlchemy engine construction, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   The application factory builds ONE engine at startup and stores it with its
       session factory on `app.state`. The `get_db_session` dependency opens a
       session per request that commits on success and rolls back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.

Why no module-level engine:
    The engine is the persistence client. Building it explicitly in the app
    factory means tests can hand in an in-memory SQLite engine, and importing
    a module never opens a connection pool as a side effect.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20:     Persistent connections for normal load
    max_overflow=10:  Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:    Validates connections before use (catches stale connections)
    pool_recycle=3600: Recycles connections every hour
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from pharmacy_directory.config import Settings


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with a single metadata
    object, which Alembic reads for migrations and tests use for create_all().
    """
    pass


# ── Engine Construction ───────────────────────────────────────────────────
def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine from settings.

    Pool sizing only applies to pooled drivers; SQLite URLs get the driver's
    default pool so local runs work without PostgreSQL.
    """
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
        )

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        # SQL logging is noisy; only in DEBUG
        echo=settings.log_level == "DEBUG",
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory bound to `engine`.

    expire_on_commit=False: attributes stay loaded after commit, so response
    models can be built without a lazy load outside the session.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory held on app.state
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global handlers
        5. Always: closes the session (returns connection to pool)
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            # Roll back on ANY failure, including non-DB errors after a write
            await session.rollback()
            raise
        finally:
            await session.close()
