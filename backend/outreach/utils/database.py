"""
Async engine and session scopes.

The engine is created on first use and torn down by close_db(), so a Celery
task that runs its own event loop gets a fresh pool bound to that loop.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from outreach.config import Settings, get_settings
from outreach.models import Base

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None

_ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def async_database_url(url: str) -> str:
    """Point plain postgres/sqlite URLs at their async drivers"""
    for prefix, driver in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return driver + url[len(prefix):]
    return url


def engine_options(url: str, settings: Settings) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if settings.DATABASE_NULL_POOL or url.startswith("sqlite"):
        options["poolclass"] = NullPool
    else:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return options


def _get_session_maker() -> async_sessionmaker:
    global _engine, _session_maker
    if _session_maker is None:
        settings = get_settings()
        url = async_database_url(settings.DATABASE_URL)
        _engine = create_async_engine(url, **engine_options(url, settings))
        _session_maker = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    return _session_maker


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back on any error"""
    async with _get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping get_db_context"""
    async with get_db_context() as session:
        yield session


async def init_db():
    """Create missing tables"""
    _get_session_maker()
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
