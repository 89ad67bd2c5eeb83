"""
Database connection and session management
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import NullPool

from app.config import get_settings

# Lazy initialization so importing workers never opens connections
_engine = None
_async_session_maker = None
_sync_engine = None
_sync_session_maker = None


def _get_database_url() -> str:
    """Get and convert database URL for async"""
    database_url = get_settings().DATABASE_URL
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def _get_sync_database_url() -> str:
    """Driver-less URL for the sync engine"""
    return get_settings().DATABASE_URL.replace("+asyncpg", "").replace("+aiosqlite", "")


def _pool_kwargs(url: str) -> dict:
    settings = get_settings()
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    }


def _get_engine():
    """Lazy engine initialization"""
    global _engine
    if _engine is None:
        url = _get_database_url()
        # Each task runs its own event loop, so connections are never pooled
        _engine = create_async_engine(
            url,
            echo=get_settings().DEBUG,
            poolclass=NullPool,
        )
    return _engine


def _get_session_maker():
    """Lazy session maker initialization"""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_maker


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Session that commits on success and rolls back on error"""
    session_maker = _get_session_maker()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _get_sync_engine():
    """Lazy sync engine initialization"""
    global _sync_engine
    if _sync_engine is None:
        url = _get_sync_database_url()
        _sync_engine = create_engine(url, pool_pre_ping=True, **_pool_kwargs(url))
    return _sync_engine


def _get_sync_session_maker():
    """Lazy sync session maker initialization"""
    global _sync_session_maker
    if _sync_session_maker is None:
        _sync_session_maker = sessionmaker(
            autoflush=False,
            bind=_get_sync_engine(),
        )
    return _sync_session_maker


def get_sync_db() -> Session:
    """Synchronous database session for Celery workers; the caller closes it"""
    return _get_sync_session_maker()()
