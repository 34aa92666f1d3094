# dropstock/database.py

from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from dropstock.core.config import Settings, get_settings

Base = declarative_base()


def is_sqlite(url) -> bool:
    return make_url(str(url)).get_backend_name() == "sqlite"


def build_engine(database_url: str, settings: Settings = None) -> AsyncEngine:
    """
    Create the async engine for the given URL.

    PostgreSQL (asyncpg) gets a sized connection pool. SQLite (aiosqlite) has
    no row locks, so every transaction starts with BEGIN IMMEDIATE and takes
    the database write lock up front; waits are bounded by the busy timeout.
    """
    settings = settings or get_settings()

    if not database_url:
        raise ValueError("DATABASE_URL is not set in environment variables")

    if is_sqlite(database_url):
        engine = create_async_engine(
            database_url,
            echo=settings.DB_ECHO,
            connect_args={"timeout": settings.LOCK_TIMEOUT_MS / 1000},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            # let the "begin" hook below emit BEGIN itself
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_async_engine(
        database_url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=1800,
        pool_pre_ping=True,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


settings = get_settings()

engine = build_engine(settings.DATABASE_URL, settings)

async_session = build_sessionmaker(engine)


@asynccontextmanager
async def get_session() -> AsyncSession:
    session = async_session()
    try:
        yield session
    finally:
        await session.close()
