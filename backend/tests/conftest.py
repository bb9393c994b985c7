"""
Global pytest configuration and shared fixtures.

Provides common test infrastructure for all test suites including:
- In-memory database engines (current schema and pre-position legacy schema)
- Session factories for SqlRemoteStore and the loader
- Item catalog and quest forest factories
- A recording RemoteStore double
"""

import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from tests.fixtures.remote import RecordingRemoteStore  # noqa: E402
from visionquest import models  # noqa: E402
from visionquest.engine.state import Item, Quest, Rarity  # noqa: E402
from visionquest.models import Base  # noqa: E402

# ============================================================================
# Database Fixtures
# ============================================================================


def _memory_engine():
    # StaticPool shares the single in-memory connection across sessions
    return create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine with the current schema."""
    engine = _memory_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def legacy_engine():
    """In-memory engine whose quests table predates the position column."""
    engine = _memory_engine()
    tables = [
        Base.metadata.tables[name]
        for name in ("storylines", "user_progress", "items", "inventory")
    ]
    async with engine.begin() as conn:
        await conn.run_sync(lambda sync_conn: Base.metadata.create_all(sync_conn, tables=tables))
        await conn.execute(text(
            """
            CREATE TABLE quests (
                id VARCHAR NOT NULL PRIMARY KEY,
                storyline_id VARCHAR NOT NULL REFERENCES storylines (id),
                parent_id VARCHAR REFERENCES quests (id),
                title VARCHAR NOT NULL,
                completed BOOLEAN DEFAULT 0 NOT NULL,
                created_at DATETIME DEFAULT (CURRENT_TIMESTAMP) NOT NULL
            )
            """
        ))

    yield engine

    await engine.dispose()


@pytest.fixture
def legacy_session_factory(legacy_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(legacy_engine, class_=AsyncSession, expire_on_commit=False)


# ============================================================================
# Catalog Fixtures
# ============================================================================


@pytest.fixture
def catalog() -> list[Item]:
    return [
        Item(id="item_journal", name="Worn Journal", rarity=Rarity.COMMON),
        Item(id="item_compass", name="Silver Compass", rarity=Rarity.RARE),
        Item(id="item_moonstone", name="Moonstone", rarity=Rarity.EPIC),
        Item(id="item_quill", name="Phoenix Quill", rarity=Rarity.LEGENDARY),
    ]


@pytest.fixture
async def seeded_catalog(session_factory, catalog) -> list[Item]:
    """Write the catalog fixture into the test database."""
    async with session_factory() as session:
        session.add_all([
            models.Item(id=i.id, name=i.name, rarity=i.rarity.value, image_ref=i.image_ref)
            for i in catalog
        ])
        await session.commit()
    return catalog


# ============================================================================
# Quest Fixtures
# ============================================================================


@pytest.fixture
def forest() -> tuple[Quest, ...]:
    """
    A small forest:

        A
        ├── A1
        │   └── A1a
        └── A2
        B
        C
    """
    a1a = Quest(id="A1a", title="Stretch", parent_id="A1", position=0)
    a1 = Quest(id="A1", title="Warm up", parent_id="A", position=0, subquests=(a1a,))
    a2 = Quest(id="A2", title="Run 5k", parent_id="A", position=1)
    a = Quest(id="A", title="Get fit", position=0, subquests=(a1, a2))
    b = Quest(id="B", title="Read more", position=1)
    c = Quest(id="C", title="Learn piano", position=2)
    return (a, b, c)


@pytest.fixture
def recording_remote() -> RecordingRemoteStore:
    return RecordingRemoteStore()
