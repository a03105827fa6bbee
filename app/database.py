"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - create_engine_and_sessionmaker(): Builds the async engine and the session
    factory. Called once from the application lifespan; the results live on
    app.state rather than as module globals.
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

Architecture note:
  We use async SQLAlchemy (with aiosqlite for SQLite) so the API can handle
  concurrent requests without blocking. When migrating to PostgreSQL, only
  the DATABASE_URL needs to change (to use the asyncpg driver).

Session lifecycle:
  Each CRUD request gets its own session via get_db(). The session commits
  on success and rolls back on exception. The transaction processor does
  NOT use get_db(); it opens its own sessions so that it controls exactly
  when the balance update and the ledger entry are committed.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


def create_engine_and_sessionmaker(
    database_url: str,
    echo: bool = False,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Create the async engine and its session factory.

    expire_on_commit=False prevents lazy-load errors after commit —
    without this, accessing attributes on a committed object would trigger
    a synchronous DB call, which fails in async context.
    """
    engine = create_async_engine(database_url, echo=echo)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class, which provides metadata tracking
    for table creation and common declarative mapping features.
    """
    pass


async def get_db(request: Request):
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
