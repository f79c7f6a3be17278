"""
Async Database Connection Management (SQLAlchemy 2.0+)

Wraps the AsyncEngine and session factory that repositories run against.
PostgreSQL (asyncpg) is the default backend; any async SQLAlchemy URL can be
passed instead (tests use `sqlite+aiosqlite://`).

Usage:
    engine = AsyncDatabaseEngine()
    await engine.initialize()
    async with engine.get_session() as session:
        repo = AuthorRepository(session)
        ...
    await engine.dispose()
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from datarepo.common.config import DB_CONFIG, REPOSITORY_CONFIG
from datarepo.models.base import Base


logger = logging.getLogger(__name__)


def build_database_url(db_config: dict[str, Any] | None = None) -> str:
    """Async connection URL: explicit `url` wins, else a postgresql+asyncpg URL."""
    config = db_config or DB_CONFIG
    if config.get("url"):
        return config["url"]

    # Validate required keys
    required_keys = {"host", "port", "user", "password", "database"}
    if not required_keys.issubset(config.keys()):
        missing = required_keys - set(config.keys())
        raise ValueError(f"Missing DB config keys: {missing}")

    return (
        f"postgresql+asyncpg://"
        f"{config['user']}:{config['password']}"
        f"@{config['host']}:{config['port']}"
        f"/{config['database']}"
    )


def _engine_options(url: str, config: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # 인메모리 SQLite는 연결이 끊기면 데이터가 사라지므로 단일 연결 공유
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            return {"poolclass": StaticPool}
        return {}

    # Priority: overrides > DB_CONFIG > Defaults
    return {
        "pool_size": overrides.get("pool_size", config.get("pool_size", 20)),
        "max_overflow": overrides.get("max_overflow", config.get("max_overflow", 10)),
        "pool_timeout": overrides.get("pool_timeout", config.get("pool_timeout", 30)),
        "pool_recycle": overrides.get("pool_recycle", config.get("pool_recycle", 3600)),
        "pool_pre_ping": True,  # Check connection liveness before checkout
    }


class AsyncDatabaseEngine:
    """
    Async Database Engine Manager (Singleton Pattern)

    Features:
        - Connection pooling with configurable limits
        - Automatic singleton reset on disposal (Crucial for tests)
        - Context manager for session handling
    """

    _instance: Optional["AsyncDatabaseEngine"] = None
    _initialized: bool = False

    def __new__(cls) -> "AsyncDatabaseEngine":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize attributes (idempotent)."""
        if self._initialized:
            return

        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker | None = None
        self._initialized = True

    async def initialize(
        self,
        db_config: dict[str, Any] | None = None,
        echo: bool | None = None,
        url: str | None = None,
        **kwargs,
    ) -> None:
        """
        Initialize the async engine with connection pooling.

        Args:
            db_config: Database configuration. Defaults to datarepo.common.config.DB_CONFIG.
            echo: Enable SQL query logging (None = REPOSITORY_CONFIG["echo"]).
            url: Full async database URL, overrides db_config.
            **kwargs: Override pool settings (pool_size, max_overflow, etc.)
        """
        if self.engine is not None:
            logger.warning("Engine already initialized, skipping re-initialization")
            return

        config = db_config or DB_CONFIG
        database_url = url or build_database_url(config)
        options = _engine_options(database_url, config, kwargs)
        if echo is None:
            echo = REPOSITORY_CONFIG["echo"]

        logger.info(f"Initializing AsyncEngine: {database_url.split('@')[-1]}")

        try:
            self.engine = create_async_engine(database_url, echo=echo, **options)

            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
                autocommit=False,
            )

            # Verify connection
            await self.health_check()
            logger.info("AsyncEngine initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize AsyncEngine: {e}")
            # Ensure cleanup on failure
            await self.dispose()
            raise RuntimeError(f"Database initialization failed: {e}") from e

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional Session Context Manager.

        Usage:
            async with engine.get_session() as session:
                await repo.create(...)
                # Auto-commit on exit
        """
        if self.session_factory is None:
            raise RuntimeError("Engine not initialized. Call await engine.initialize() first.")

        session: AsyncSession = self.session_factory()

        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Session transaction rolled back: {e}")
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Verify database connectivity."""
        if self.engine is None:
            raise RuntimeError("Engine not initialized")

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise

    async def create_schema(self, reset: bool = False) -> None:
        """
        Create tables for every model registered on Base.metadata.
        Development and test use only; production schemas come from migrations.
        """
        if self.engine is None:
            raise RuntimeError("Engine not initialized")

        async with self.engine.begin() as conn:
            if reset:
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Schema ready ({len(Base.metadata.tables)} tables)")

    async def dispose(self) -> None:
        """
        Dispose the engine and RESET the singleton instance.

        This is critical for testing environments to ensure isolation.
        """
        if self.engine:
            logger.info("Disposing AsyncEngine...")
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

        # CRITICAL: Reset singleton state
        AsyncDatabaseEngine._instance = None
        self._initialized = False
        logger.debug("AsyncDatabaseEngine singleton reset")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Session generator for dependency injection (one transaction per request)."""
    db = AsyncDatabaseEngine()
    async with db.get_session() as session:
        yield session
