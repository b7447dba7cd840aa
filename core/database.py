"""
Database Management and Configuration.

This module sets up the asynchronous database connection for the Channel &
Session API. It uses SQLAlchemy with `asyncio` support and SQLModel for the
table definitions in `core.models`.

Key Components:
- `engine` / `async_session`: The async engine and session factory, configured
  from the `DATABASE_URL` environment variable. SQLite (aiosqlite) is used for
  development and tests, PostgreSQL (asyncpg) in production.
- `init_database`: Rebinds the engine and session factory to another URL. The
  application lifespan and the test suite use it to point at a specific store.
- `create_db_and_tables`: Startup hook creating every SQLModel table.
- `get_database_info` / `health_check`: Diagnostics for the monitoring router.
"""

import os
import logging
from typing import Optional
from sqlmodel import SQLModel
from sqlalchemy import text, func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core import models  # noqa: F401  registers tables on SQLModel.metadata

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./channel_api.db"

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
async_session: Optional[async_sessionmaker] = None
database_url: str = DEFAULT_DATABASE_URL


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine for either SQLite or PostgreSQL"""
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=False,  # Set to True for SQL debugging
        )
    return create_async_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Validate connections before use
        echo=False,
    )


def init_database(url: Optional[str] = None) -> async_sessionmaker:
    """Bind the module-level engine and session factory to `url`"""
    global engine, async_session, database_url

    database_url = url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    engine = build_engine(database_url)
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    return async_session


async def dispose_database():
    """Close pooled connections (called on shutdown)"""
    if engine is not None:
        await engine.dispose()


async def create_db_and_tables():
    """
    Initialize the database and create all tables.
    Called during application startup.
    """
    if engine is None:
        init_database()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Channel API database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create Channel API database tables: {e}")
        raise


def _database_type() -> str:
    return "postgresql" if "postgresql" in database_url else "sqlite"


async def get_database_info():
    """
    Get basic database information for health checks.
    """
    try:
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
            connection_healthy = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        connection_healthy = False

    return {
        "database_url": database_url.split("@")[1]
        if "@" in database_url
        else "masked",  # Hide credentials
        "connection_healthy": connection_healthy,
        "database_type": _database_type(),
    }


async def health_check():
    """
    Perform a health check that also touches the accounts table.
    """
    try:
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
            result = await session.execute(
                select(func.count()).select_from(models.Account)
            )
            account_count = result.scalar_one()

        return {
            "status": "healthy",
            "database_type": _database_type(),
            "tables_accessible": True,
            "accounts": account_count,
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "database_type": _database_type(),
        }
