"""Pytest configuration and fixtures."""
import pytest
from unittest.mock import AsyncMock
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, build_session_factory
from app.rate_limit import limiter
from app.services.document_store import InMemoryDocumentStore
from app.services.purchase_verification import PurchaseVerifier
import app.models  # noqa: F401

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_test_engine():
    """In-memory SQLite shared by every session of one engine."""
    return create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine_factory():
    return make_test_engine


@pytest.fixture(autouse=True)
def disable_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def store():
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def fake_sleep():
    """Stand-in for asyncio.sleep that records delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def verifier(store, fake_sleep):
    """Verifier with the production defaults and a recorded sleep."""
    return PurchaseVerifier(store, interval=2.0, default_max_attempts=10, deadline=None, sleep=fake_sleep)


@pytest.fixture
async def test_engine():
    """Create test database."""
    engine = make_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session
