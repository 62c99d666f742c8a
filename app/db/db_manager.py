# app/db/db_manager.py
"""
Database manager focused on connection management and session handling.
Schema migrations are handled separately via Alembic CLI.

Design principles:
- Single responsibility: Connection/session management only
- Fail fast: Invalid configuration crashes on startup
- Explicit over implicit: No magic auto-migrations
"""

import time
import ssl as ssl_module
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
    AsyncEngine,
)
from sqlalchemy import text, inspect
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Any, Optional
from common import AppError, DatabaseConfig, get_app_logger
from .unit_of_work import UnitOfWork, SerialLockRegistry

logger = get_app_logger(__name__)


class DbManager:
    """
    Database connection and session manager.

    Responsibilities:
    - Async engine/connection pool management
    - Session and unit-of-work lifecycle
    - Health checks

    Usage:
        # Startup
        db_manager = DbManager.from_config(config.database)
        await db_manager.verify_connection()

        # Plain reads/writes (commit on exit)
        async with db_manager.session() as session:
            doctor = await session.get(Doctor, doctor_id)

        # Explicit transaction threaded through several calls
        async with db_manager.unit_of_work() as uow:
            serial = await allocator.allocate(uow, doctor_id, serial_date)
            uow.session.add(booking)

        # Shutdown
        await db_manager.dispose()
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        echo: bool = False,
        connect_args: Optional[dict[str, Any]] = None,
        serial_lock_timeout: float = 10.0,
    ):
        """
        Args:
            url: Database URL (postgresql+asyncpg:// or sqlite+aiosqlite://)
            pool_size: Number of persistent connections (ignored for SQLite)
            max_overflow: Additional connections beyond pool_size
            pool_timeout: Seconds to wait for connection from pool
            pool_recycle: Recycle connections after N seconds
            pool_pre_ping: Test connections before using
            echo: Log all SQL statements (use for debugging)
            connect_args: Driver-specific connection arguments (SSL, etc.)
            serial_lock_timeout: Seconds a serial allocator waits for its lock
        """
        self._validate_url(url)

        self._config: dict[str, Any] = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
        }

        engine_kwargs: dict[str, Any] = {
            "echo": echo,
            "pool_pre_ping": pool_pre_ping,
            "connect_args": connect_args or {},
        }
        if not url.startswith("sqlite"):
            engine_kwargs.update(self._config)

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        # Process-local serial locks shared by every unit of work of this manager
        self.serial_locks = SerialLockRegistry(timeout=serial_lock_timeout)

        self._verified = False

        logger.info(
            "DbManager initialized",
            dialect=self.dialect_name,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pre_ping=pool_pre_ping,
        )

    @classmethod
    def from_config(
        cls,
        config: DatabaseConfig,
        **kwargs: Any,
    ) -> "DbManager":
        """
        Create DbManager from DatabaseConfig with SSL support.

        Example:
            db_manager = DbManager.from_config(config.database)
        """
        url = config.get_connection_url(include_password=True)
        connect_args = kwargs.pop("connect_args", {})

        if config.ssl_mode and config.driver.value == "asyncpg":
            if config.ssl_mode.value == "disable":
                connect_args["ssl"] = False
            elif config.requires_ssl():
                ssl_context = ssl_module.create_default_context()
                if config.ssl_ca_path:
                    ssl_context.load_verify_locations(cafile=str(config.ssl_ca_path))
                if config.ssl_cert_path and config.ssl_key_path:
                    ssl_context.load_cert_chain(
                        certfile=str(config.ssl_cert_path),
                        keyfile=str(config.ssl_key_path),
                    )
                if config.ssl_mode.value != "verify-full":
                    ssl_context.check_hostname = False
                    if config.ssl_mode.value == "require":
                        ssl_context.verify_mode = ssl_module.CERT_NONE
                connect_args["ssl"] = ssl_context

        return cls(
            url=url,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            connect_args=connect_args,
            **kwargs,
        )

    @staticmethod
    def _validate_url(url: str) -> None:
        if not url or not url.startswith(
            ("postgresql+asyncpg://", "postgresql+psycopg://", "sqlite+aiosqlite://")
        ):
            raise ValueError(
                "Invalid database URL. Expected postgresql+asyncpg://, "
                f"postgresql+psycopg:// or sqlite+aiosqlite://, got: {url[:20]}..."
            )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def verify_connection(self) -> None:
        """
        Verify database connection on startup.

        Raises:
            ConnectionError: If connection fails
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            self._verified = True
            logger.info("✓ Database connection verified")
        except Exception as e:
            logger.error("❌ Database connection failed", error=str(e))
            raise ConnectionError(f"Failed to connect to database: {e}") from e

    async def verify_migrations_current(self) -> str:
        """
        Check that Alembic has been run against this database.

        Returns:
            The current migration revision

        Raises:
            RuntimeError: If alembic_version table doesn't exist
        """
        async with self.engine.connect() as conn:
            has_table = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).has_table("alembic_version")
            )
            if not has_table:
                raise RuntimeError(
                    "alembic_version table not found. "
                    "Have you run 'alembic upgrade head'?"
                )
            result = await conn.execute(text("SELECT version_num FROM alembic_version"))
            current_version = result.scalar()

        logger.info("Current migration version", version=current_version)
        return str(current_version)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional database session.

        Automatically commits on success, rolls back on exception.
        Domain errors raised inside the block roll back without a log line;
        the API error handler reports them.
        """
        session = self.session_maker()
        try:
            yield session
            await session.commit()
        except AppError:
            await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.warning("Session error, rolled back", error=str(e))
            raise
        finally:
            await session.close()

    def unit_of_work(self) -> UnitOfWork:
        """Create a new, not yet entered, unit of work."""
        return UnitOfWork(self.session_maker, self.serial_locks, self.dialect_name)

    async def health_check(self) -> dict[str, Any]:
        """
        Health check with basic pool metrics.

        Example:
            {"healthy": True, "dialect": "postgresql", "response_time_ms": 5.2, ...}
        """
        start = time.perf_counter()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"healthy": False, "error": "database unreachable"}

        return {
            "healthy": True,
            "dialect": self.dialect_name,
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
            "pool_status": self.engine.pool.status(),
            "serial_locks_held": self.serial_locks.held_count,
        }

    async def dispose(self) -> None:
        """
        Dispose of all connections and cleanup resources.
        Call this on application shutdown.
        """
        await self.engine.dispose()
        logger.info("✓ Database connections disposed")

    def get_config_snapshot(self) -> dict[str, Any]:
        """Get current configuration (for monitoring/debugging)."""
        return self._config.copy()


__all__ = ["DbManager"]
