"""
database.py — Async engine, session factory and the get_db dependency.

Routes receive their session through Depends(get_db); the tests swap get_db
for an in-memory SQLite session via app.dependency_overrides.
"""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from intake.config import settings


class Base(DeclarativeBase):
    """Metadata root for analysis_history; alembic/env.py imports it from here."""


# Engine is created lazily on first connect; importing this module never
# touches the database.
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
)

# expire_on_commit=False: reconcile.py commits mid-request and the route keeps
# reading the returned records afterwards.
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request: commit when the handler returns, roll back when it
    raises. Failed analysis attempts are committed earlier by reconcile.py, so
    this rollback never discards them.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
