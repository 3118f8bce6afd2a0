"""
Test Suite Configuration
"""
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from freight_engine.config.settings import (
    CartonSettings,
    FreightSettings,
    ReconciliationSettings,
    ResolutionSettings,
)
from freight_engine.database.connection import enable_sqlite_savepoints
from freight_engine.database.models import Base
from freight_engine.domain.facts import ProductFacts
from tests.fakes import make_store


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def carton_config() -> CartonSettings:
    return CartonSettings()


@pytest.fixture
def freight_config() -> FreightSettings:
    return FreightSettings(high_end_list="rh.com,arhaus.com", value_list="ikea.com,wayfair.com")


@pytest.fixture
def reconcile_config() -> ReconciliationSettings:
    return ReconciliationSettings()


@pytest.fixture
def resolve_config() -> ResolutionSettings:
    return ResolutionSettings()


@pytest.fixture
def store():
    """Empty in-memory dimension store"""
    return make_store()


@pytest.fixture
def make_facts():
    """Build ProductFacts from keyword fields"""
    def _make(**fields) -> ProductFacts:
        return ProductFacts.from_payload(fields)
    return _make


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine with the full schema"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session against the test engine"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()
