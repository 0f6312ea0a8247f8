"""
PayFlow HR - Database Configuration

This module handles database connection setup using SQLAlchemy 2.0 async.
"""

from typing import Any, AsyncGenerator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from payflow.config import settings


# Naming convention for constraints (helps with migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    metadata = MetaData(naming_convention=convention)


def build_engine(database_url: Optional[str] = None, **options: Any) -> AsyncEngine:
    """
    Create an async engine for the payroll database.

    Pool sizing applies to server databases; SQLite (tests) shares one
    connection so an in-memory schema survives across sessions.
    """
    url = database_url or settings.database_url_async
    engine_options: dict = {"echo": settings.debug}
    if url.startswith("sqlite"):
        engine_options["poolclass"] = StaticPool
        engine_options["connect_args"] = {"check_same_thread": False}
    else:
        engine_options["pool_pre_ping"] = True
        engine_options["pool_size"] = settings.database_pool_size
        engine_options["max_overflow"] = settings.database_max_overflow
    engine_options.update(options)
    return create_async_engine(url, **engine_options)


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory; objects stay readable after commit."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine()
async_session_maker = create_session_maker(engine)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session.
    Use with FastAPI's Depends().
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables.
    Use this for development/testing only.
    For production, use Alembic migrations.
    """
    # Register every model on Base.metadata before create_all
    import payflow.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(bind: Optional[AsyncEngine] = None) -> None:
    """Drop all tables."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
