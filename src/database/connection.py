"""
Database Connection Management

Async SQLAlchemy 2.0 store client. One :class:`Database` is constructed at
process start (application lifespan), kept on ``app.state`` and handed to
request handlers through FastAPI dependencies; it is disposed at shutdown.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.config import Settings, get_settings
from src.database.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """
    Engine plus session factory with commit/rollback handling.

    Example:
        database = Database.from_settings(settings)
        await database.connect()
        async with database.session() as db:
            result = await db.execute(query)
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Database":
        """Create an engine from database settings."""
        settings = settings or get_settings()
        engine = create_async_engine(
            settings.database.async_url,
            echo=settings.database.echo,
            pool_pre_ping=True,
            # asyncpg pools its own connections
            poolclass=NullPool,
        )
        return cls(engine)

    async def connect(self) -> None:
        """Verify connectivity."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection established", url=self.engine.url.render_as_string(hide_password=True))
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

    async def create_all(self) -> None:
        """Create tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", tables=len(Base.metadata.tables))

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
        logger.info("Database connection pool closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session scoped to one unit of work.

        Commits when the block exits normally, rolls back and re-raises on error.
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
            await session.rollback()
            raise
        except Exception as e:
            # Domain and request errors are logged by the API error handlers
            logger.debug("Rolling back session", error_type=type(e).__name__)
            await session.rollback()
            raise
        finally:
            await session.close()

    async def check_health(self) -> dict:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000
            return {"status": "healthy", "latency_ms": round(latency_ms, 2)}
        except Exception as e:
            logger.warning("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's store client."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database not initialized. Start the application lifespan first.")
    return database


async def get_db_dependency(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Example:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db_dependency)):
            ...
    """
    async with get_database(request).session() as session:
        yield session
