"""Pytest configuration and shared fixtures."""

import os

# Set test environment variables before any imports
# Use valid-format token to pass aiogram validation
os.environ["BOT_TOKEN"] = "123456789:ABCdefGHIjklMNOpqrsTUVwxyz"
os.environ["BOT_MODE"] = "polling"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_cardbot.db"
os.environ.pop("ADMIN_TOKEN", None)

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from cardbot.core.contracts import ProfileData
from cardbot.services import build_services
from cardbot.storage.db import Base, make_session_factory


class FakeClock:
    """Manually advanced time source for the in-memory stores."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_profile(name: str = "Alice Smith", **overrides) -> ProfileData:
    fields = {
        "name": name,
        "title": "Software Engineer",
        "description": "Builds backend services in Python.",
    }
    fields.update(overrides)
    return ProfileData(**fields)


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def engine(tmp_path):
    """Create a file-backed test database engine."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cardbot.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def services(session_factory, clock):
    return build_services(session_factory=session_factory, page_size=5, clock=clock)


@pytest.fixture
def profile_factory():
    """Build a valid ProfileData, overriding any field by keyword."""
    return make_profile
