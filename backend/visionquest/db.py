from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)

from . import config

# Create async SQLAlchemy engine
engine = create_async_engine(
    config.DATABASE_URL,
    echo=False,  # True if you want to see SQL
    future=True,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
)


def make_session_factory(database_url: str) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build a separate engine and session factory (tests, alternate databases)."""
    other_engine = create_async_engine(database_url, echo=False, future=True)
    return other_engine, async_sessionmaker(other_engine, expire_on_commit=False)
