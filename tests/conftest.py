"""Pytest configuration shared by unit, integration and contract tests."""

import os

# Set test configuration BEFORE any imports from src
# so the module-level engine and settings use it
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TIMEZONE"] = "Asia/Jakarta"
os.environ["LOCALE"] = "id_ID"
os.environ["CURRENCY"] = "IDR"
os.environ["PENALTY_POLICY"] = "settlement"
os.environ["PENALTY_DUE_DAY"] = "10"
os.environ["LOG_LEVEL"] = "INFO"

from datetime import datetime  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from src.models import Base  # noqa: E402
from src.services import create_engine_for_url  # noqa: E402
from src.services.config import BillingSettings, reset_settings  # noqa: E402

JAKARTA = ZoneInfo("Asia/Jakarta")


class FixedClock:
    """Callable clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args: int) -> datetime:
        """Move to a Jakarta-local wall time: set(2024, 1, 15, 9)."""
        self.now = datetime(*args, tzinfo=JAKARTA)
        return self.now


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop cached settings so monkeypatched environment takes effect."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> BillingSettings:
    return BillingSettings()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 5, 9, 0, tzinfo=JAKARTA))


@pytest.fixture
async def engine():
    """In-memory database shared by every session of one test."""
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_db_session(session_factory):
    """Create async test database session."""
    async with session_factory() as session:
        yield session
