# tests/conftest.py
import os

# Keep the app from reading a developer's .env sweep settings during tests
os.environ.setdefault("SWEEP_ENABLED", "false")

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from dropstock import models  # noqa: F401
from dropstock.core.config import Settings, get_settings
from dropstock.database import Base, build_engine, build_sessionmaker
from dropstock.models.drop import Drop
from tests.mocks import FakeClock, MockEmitter

# Set TEST_DATABASE_URL to run against PostgreSQL; defaults to a throwaway SQLite file
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


@pytest.fixture
def settings(tmp_path):
    """Provide test settings"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'dropstock_test.db'}",
        RESERVATION_DURATION_MS=60000,
        LOCK_TIMEOUT_MS=5000,
        SWEEP_ENABLED=False,
        BASIC_AUTH_USERNAME="admin",
        BASIC_AUTH_PASSWORD="secret",
        ENVIRONMENT="test",
    )


@pytest.fixture(scope="function")
async def test_engine(settings):
    """Create and configure the test database engine (function-scoped)."""
    engine = build_engine(settings.DATABASE_URL, settings)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_sessionmaker(test_engine)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def emitter():
    return MockEmitter()


@pytest.fixture
def make_drop(session_factory, clock):
    """Factory inserting a committed drop with full stock."""
    async def _make_drop(stock=5, price="49.99", name="Test Drop", starts_at=None):
        async with session_factory() as session:
            drop = Drop(
                name=name,
                price=Decimal(price),
                stock=stock,
                initial_stock=stock,
                starts_at=starts_at,
                created_at=clock(),
                updated_at=clock(),
            )
            session.add(drop)
            await session.commit()
            return drop.id

    return _make_drop


@pytest.fixture
def read_drop(session_factory):
    """Read a drop in its own short transaction."""
    async def _read_drop(drop_id):
        async with session_factory() as session:
            return await session.get(Drop, drop_id)

    return _read_drop


@pytest.fixture
async def client(session_factory, settings, clock, emitter):
    """Provide an async HTTP client with overridden dependencies"""
    from dropstock.dependencies import get_clock, get_db, get_event_emitter
    from dropstock.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_event_emitter] = lambda: emitter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
