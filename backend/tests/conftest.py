"""
Shared fixtures: in-memory SQLite store, fake clocks, key factories.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from itertools import count

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from outreach.models import AIApiKey, AIProvider, Base
from outreach.services.key_manager import KeyManager
from outreach.utils.cache import CacheService
from outreach.utils.security import encrypt_api_key


class FakeClock:
    """Settable datetime clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Same commit/rollback contract as get_db_context, bound to the test engine"""
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def factory():
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory


@pytest_asyncio.fixture
async def db_session(engine):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 12, 0, 0))


@pytest.fixture
def cache():
    return CacheService(prefix="test", default_ttl=60)


@pytest.fixture
def keys(session_factory, cache, clock):
    return KeyManager(session_factory=session_factory, cache=cache, clock=clock)


@pytest.fixture
def make_key(session_factory, clock):
    """Insert an ai_api_keys row directly and return its id"""
    numbers = count(1)

    async def _make(
        user_id: str = "user-1",
        provider: AIProvider = AIProvider.GROQ,
        api_key: str = "gsk_test_0123456789abcdef",
        **fields,
    ) -> int:
        n = next(numbers)
        values = {
            "user_id": user_id,
            "provider": provider,
            "key_name": f"{provider.value}-key-{n}",
            "encrypted_key": encrypt_api_key(api_key),
            "is_active": True,
            "enable_rotation": False,
            "usage_count": 0,
            "daily_reset_at": clock().date(),
            "created_at": clock(),
            "updated_at": clock(),
        }
        values.update(fields)
        row = AIApiKey(**values)
        async with session_factory() as db:
            db.add(row)
            await db.flush()
            return row.id

    return _make


@pytest.fixture
def yesterday(clock) -> date:
    return clock().date() - timedelta(days=1)
