"""Engine, session factory and schema setup for the SQLite store."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from investor_platform.app.config import get_settings


class Base(DeclarativeBase):
    pass


settings = get_settings()

# Writers queue on the file lock; a losing compare-and-set waits instead of failing
engine = create_async_engine(
    settings.database_url,
    connect_args={"check_same_thread": False, "timeout": 30},
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Factory background jobs use to open sessions outlasting the request."""
    return async_session


async def init_db():
    import investor_platform.domain.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text("PRAGMA journal_mode=WAL"))


async def close_db():
    await engine.dispose()
