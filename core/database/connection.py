# Async database connection management
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from core.logging import (
    get_logger,
    get_database_logger_safe,
    get_error_logger_safe,
)

logger = get_logger(__name__, component="database")

# Initialize specialized loggers
db_logger = get_database_logger_safe("database_manager")
error_logger = get_error_logger_safe("database_manager")

# The base class for all SQLAlchemy models
Base = declarative_base()

SLOW_SESSION_THRESHOLD_MS = 5000


class DatabaseManager:
    """Manages the connection to the ledger database"""

    def __init__(self, url: str, environment: str = "development",
                 schema_management: str = "create_all", echo: bool = False):
        engine_kwargs = {"echo": echo}
        if not url.startswith("sqlite"):
            # Connection pool configuration for server databases
            engine_kwargs.update(
                pool_pre_ping=True,  # Test connections before use
                pool_size=20,        # Base pool size
                max_overflow=30,     # Additional connections beyond pool_size
                pool_recycle=3600,   # Recycle connections after 1 hour
            )
        self._engine = create_async_engine(url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            class_=AsyncSession
        )
        self._url = url
        self._environment = environment
        self._schema_management = schema_management

    @property
    def is_sqlite(self) -> bool:
        return self._url.startswith("sqlite")

    async def init(self, schema_management: Optional[str] = None) -> None:
        """Create the schema unless schema management is disabled"""
        schema_mgmt = schema_management or self._schema_management

        if schema_mgmt == "none":
            logger.info("Database schema management disabled", environment=self._environment)
            return

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized with create_all", environment=self._environment)

    async def drop_all(self) -> None:
        """Drop every table known to the metadata"""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Database tables dropped", environment=self._environment)

    async def verify_connection(self) -> bool:
        """Verify database connection is ready"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
                return True
        except (SQLAlchemyError, OSError) as e:
            logger.error("Database connection verification failed", error=str(e))
            return False

    async def shutdown(self) -> None:
        """Closes the database connection pool"""
        await self._engine.dispose()
        logger.info("Database connection pool closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Provides a new database session context manager WITHOUT auto-commit.

        Callers own transaction boundaries (``async with session.begin()``).
        """
        session_start_time = time.time()
        async with self._session_factory() as session:
            db_logger.debug("Database session opened",
                            operation="session_open",
                            environment=self._environment)
            try:
                yield session
            except Exception as session_error:
                await session.rollback()

                session_duration = (time.time() - session_start_time) * 1000
                log = error_logger.error if isinstance(session_error, SQLAlchemyError) else db_logger.debug
                log("Database session error with rollback",
                    error=str(session_error),
                    error_type=type(session_error).__name__,
                    session_duration_ms=session_duration,
                    environment=self._environment)
                raise
            finally:
                session_duration = (time.time() - session_start_time) * 1000

                if session_duration > SLOW_SESSION_THRESHOLD_MS:
                    db_logger.warning("Long-running database session",
                                      session_duration_ms=session_duration,
                                      threshold_ms=SLOW_SESSION_THRESHOLD_MS,
                                      operation="session_duration")

                db_logger.debug("Database session closed",
                                operation="session_close",
                                session_duration_ms=session_duration,
                                environment=self._environment)
