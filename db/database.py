import logging
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import AsyncGenerator
from core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

engine = None
async_session_maker = None
Base = declarative_base()


def get_engine() -> AsyncEngine:
    global engine
    if engine is None:
        if DATABASE_URL.startswith("sqlite"):
            engine = create_async_engine(DATABASE_URL, echo=False)
        else:
            engine = create_async_engine(
                DATABASE_URL,
                echo=False,
                pool_size=20,
                max_overflow=20,
                pool_timeout=30,
                pool_recycle=3600
            )
    return engine


def get_session_maker():
    global async_session_maker
    if async_session_maker is None:
        async_session_maker = sessionmaker(
            get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return async_session_maker


# Column additions for tables created before email verification existed.
# The unique index matches the one create_all builds for remote_provider_id.
MIGRATIONS = [
    "ALTER TABLE users ADD COLUMN IF NOT EXISTS email_verified BOOLEAN NOT NULL DEFAULT FALSE",
    "ALTER TABLE users ADD COLUMN IF NOT EXISTS remote_provider_id VARCHAR(128)",
    "ALTER TABLE users ADD COLUMN IF NOT EXISTS updated_at TIMESTAMPTZ",
    "CREATE UNIQUE INDEX IF NOT EXISTS ix_users_remote_provider_id ON users (remote_provider_id)",
]


async def create_db_and_tables():
    from . import models
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Run migrations for new columns
    if not DATABASE_URL.startswith("sqlite"):
        await run_migrations()


async def run_migrations():
    """Run any pending column and index additions"""
    from sqlalchemy import text

    engine = get_engine()
    async with engine.begin() as conn:
        for migration in MIGRATIONS:
            try:
                await conn.execute(text(migration))
            except Exception as e:
                # Column might already exist or other non-critical error
                logger.debug(f"Migration skipped ({migration}): {e}")


async def dispose_engine():
    global engine, async_session_maker
    if engine is not None:
        await engine.dispose()
        engine = None
        async_session_maker = None


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    session_maker = get_session_maker()
    async with session_maker() as session:
        yield session
