# backend/db/session.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Dict

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from backend.core.config import Settings
from backend.core.exceptions import DatabaseError
from backend.core.logging import get_structlog_logger
from backend.db.base import Base

logger = get_structlog_logger(__name__)


class Database:
    """Async engine and session factory owned by one application instance."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: AsyncEngine = self._create_engine()
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def _create_engine(self) -> AsyncEngine:
        settings = self.settings

        if settings.is_sqlite:
            engine = create_async_engine(
                settings.database_url,
                poolclass=NullPool if settings.is_testing else None,
                echo=settings.debug,
                connect_args={"timeout": 15},
            )

            @event.listens_for(engine.sync_engine, "connect")
            def set_sqlite_pragmas(dbapi_connection, connection_record):
                """Enable WAL and foreign keys on every SQLite connection."""
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
        else:
            engine = create_async_engine(
                settings.database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_timeout=settings.database_pool_timeout,
                pool_recycle=settings.database_pool_recycle,
                pool_pre_ping=True,  # Verify connections before using
                echo=settings.debug,
            )

        logger.info(
            "database.engine.created",
            dialect=engine.dialect.name,
            testing=settings.is_testing,
        )
        return engine

    @staticmethod
    def _ensure_sqlite_directory(database_url: str) -> None:
        database = make_url(database_url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    async def create_all(self) -> None:
        """Create every table registered on the declarative base."""
        # Register models on the metadata before create_all
        import backend.models  # noqa: F401

        if self.settings.is_sqlite:
            self._ensure_sqlite_directory(self.settings.database_url)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.schema_ready", tables=sorted(Base.metadata.tables))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Context manager yielding a session that rolls back on error."""
        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("database.session_error", error=str(e))
            raise DatabaseError(
                message="Database session error",
                details={"error": str(e)},
            ) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def ping(self) -> Dict[str, Any]:
        """Round-trip the database and report latency."""
        started = datetime.now(timezone.utc)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.scalar()
            elapsed = (datetime.now(timezone.utc) - started).total_seconds() * 1000
            return {
                "status": "connected" if row == 1 else "disconnected",
                "dialect": self.engine.dialect.name,
                "response_time_ms": round(elapsed, 2),
            }
        except Exception as e:
            logger.error("database.health_check_failed", error=str(e))
            return {
                "status": "disconnected",
                "error": str(e),
            }

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("database.connection_closed")


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
