"""Database Session Manager — one async engine per process, one session per request.

Invariants:
    - A request session rolls back on any exception before it is closed
    - SQLAlchemy exceptions escaping a request become DatabaseError (503 envelope)
    - Services commit their own transactions; the manager never auto-commits

Design Decisions:
    - db_manager is built by the FastAPI lifespan, tests override get_db instead
    - expire_on_commit=False: the checkout orchestrator keeps reading the attempt
      row after committing its claim, before the charge
    - SQLite URLs skip pool sizing (aiosqlite has no QueuePool)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from storefront.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError are DBAPIErrors.
_OPERATION_BY_ERROR: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "commit", "Integrity constraint violated"),
    (OperationalError, "execute", "Connection or operational error"),
    (DBAPIError, "query", "Database driver error"),
    (SQLAlchemyError, "unknown", "Database operation failed"),
)


def to_database_error(exc: SQLAlchemyError) -> DatabaseError:
    """Classify a SQLAlchemy exception into the public DatabaseError."""
    for error_type, operation, message in _OPERATION_BY_ERROR:
        if isinstance(exc, error_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


def build_engine(
    database_url: str, pool_size: int = 20, max_overflow: int = 10,
) -> AsyncEngine:
    options: dict = {"pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


class DatabaseSessionManager:
    """Owns the engine and hands out request-scoped sessions."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._sessions() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                error = to_database_error(e)
                logger.error(
                    "Database error escaped request session",
                    extra={"error_code": error.code, "operation": error.operation},
                    exc_info=True,
                )
                raise error from e
            except BaseException:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Readiness probe: True when a trivial SELECT round-trips."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except DatabaseError:
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **pool_options) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(build_engine(database_url, **pool_options))
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if db_manager is None:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
