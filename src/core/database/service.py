"""
Database Service - Core Infrastructure Layer (Pathway 2025)

Purpose
-------
Async database engine and session management for the progression backend.
Provides atomic transactions, pessimistic locking support and health checks.

Responsibilities
----------------
- Own a single AsyncEngine instance with connection pooling
- Provide async context managers for read sessions and atomic transactions
- Enforce transaction discipline: automatic commit on success, rollback on exception
- Translate driver failures into `DatabaseError` (retryable, store unavailable)
- Create the schema for fresh deployments and test databases

Non-Responsibilities
--------------------
- Database migrations
- Domain logic, business rules or event emission

Architecture Notes
------------------
**Instance model**:
- One `DatabaseService` is created at process start and injected into the
  services that need it (see `ServiceContainer`); nothing here is global.

**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never manually call `session.commit()` inside service code

**Pool Selection**:
- QueuePool in normal operation
- NullPool when `Config.is_testing()` (file-backed SQLite in tests)
- StaticPool for `:memory:` SQLite URLs so every session sees one database

Usage Example
-------------
>>> database = DatabaseService.from_config()
>>> await database.initialize()
>>> async with database.get_transaction() as session:
>>>     score = await session.get(UserScore, score_id, with_for_update=True)
>>>     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, StaticPool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.exceptions import DatabaseError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class DatabaseSettings:
    """Immutable engine settings, resolved once per service instance."""

    url: str
    echo: bool = False
    pool_class: Optional[Type[Pool]] = None
    pool_size: int = 10
    max_overflow: int = 10
    pool_recycle: int = 1800
    pool_timeout: int = 30

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"

    @classmethod
    def from_config(cls) -> "DatabaseSettings":
        database_url = Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        return cls(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=NullPool if Config.is_testing() else None,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
        )


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async engine and session management.

    Public API
    ----------
    - initialize() / shutdown() -> engine lifecycle
    - create_all() / drop_all() -> schema management
    - get_session() -> read-only access
    - get_transaction() -> atomic write transaction (preferred)
    - health_check() -> fast reachability check
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> "DatabaseService":
        return cls(DatabaseSettings.from_config())

    @classmethod
    def from_url(cls, url: str, **overrides: Any) -> "DatabaseService":
        return cls(DatabaseSettings(url=url, **overrides))

    @property
    def dialect_name(self) -> str:
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine.dialect.name

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    def _engine_kwargs(self) -> dict[str, Any]:
        settings = self._settings
        kwargs: dict[str, Any] = {"echo": settings.echo}

        if settings.is_sqlite and ":memory:" in settings.url:
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        elif settings.pool_class is not None:
            kwargs["poolclass"] = settings.pool_class
        elif not settings.is_sqlite:
            kwargs.update(
                {
                    "pool_size": settings.pool_size,
                    "max_overflow": settings.max_overflow,
                    "pool_recycle": settings.pool_recycle,
                    "pool_timeout": settings.pool_timeout,
                    "pool_pre_ping": True,
                }
            )

        return kwargs

    async def initialize(self) -> None:
        """
        Initialize the engine and session factory (idempotent).

        Raises
        ------
        DatabaseInitializationError
            If engine creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                self._engine = create_async_engine(
                    self._settings.url, **self._engine_kwargs()
                )
                self._session_factory = async_sessionmaker(
                    bind=self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            logger.info(
                "DatabaseService initialized successfully",
                extra={"url_scheme": self._settings.url_scheme},
            )

    async def shutdown(self) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with self._init_lock:
            if self._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await self._engine.dispose()
            finally:
                self._engine = None
                self._session_factory = None

            logger.info("DatabaseService shutdown complete")

    async def create_all(self) -> None:
        """Create every table registered on `Base.metadata`."""
        self._ensure_initialized()
        assert self._engine is not None

        # Registers every model on Base.metadata
        import src.database.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema created",
            extra={"tables": sorted(Base.metadata.tables.keys())},
        )

    async def drop_all(self) -> None:
        self._ensure_initialized()
        assert self._engine is not None

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        logger.warning("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Execute ``SELECT 1``.

        Returns False instead of raising, so it can back readiness probes.
        """
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.debug(
            "Database health check completed",
            extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
        )
        return True

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    def _ensure_initialized(self) -> None:
        if self._session_factory is None or self._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call initialize() during startup."
            )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        Use for read-only operations. Driver failures surface as `DatabaseError`.
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                logger.debug("Database session opened (read-only)")
                yield session
            except (OperationalError, DBAPIError) as exc:
                logger.error(
                    "Database error in read session",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseError("read", exc) from exc
            finally:
                logger.debug(
                    "Database session closed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session wrapped in an atomic transaction.

        **On Success**: commits.
        **On Exception**: rolls back; SQLAlchemy driver errors are re-raised as
        `DatabaseError`, everything else is re-raised unchanged.
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                logger.debug("Database transaction started")
                yield session
                await session.commit()

                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    "Database error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise DatabaseError("transaction", exc) from exc

            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise
