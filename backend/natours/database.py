"""
Natours Backend — Database Connection Management
=================================================

What:  The Database object (async engine + session factory), the ORM base
       class, and the per-request session dependency.
How:   One Database is constructed by the process supervisor (or a test
       fixture) and attached to the application as `app.state.database`.
       Route handlers receive sessions through `get_db_session`, which
       commits on success and rolls back on error.

Connection Pooling:
    PostgreSQL (asyncpg): pool_size / max_overflow / pre_ping from settings,
    connections recycled hourly.
    SQLite (aiosqlite):   a single shared connection (StaticPool), so an
    in-memory database survives across sessions in tests.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
)

from natours.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


class Database:
    """
    Owns the connection pool for one running application.

    Lifecycle:
        1. Constructed once from Settings (no I/O happens here)
        2. connect(): verifies connectivity with retries (SELECT 1)
        3. session(): hands out AsyncSession instances per request
        4. dispose(): closes every pooled connection at shutdown
    """

    def __init__(self, url: str, *, echo: bool = False, **engine_options):
        self.url = url
        options = dict(engine_options)
        if url.startswith("sqlite"):
            options.pop("pool_size", None)
            options.pop("max_overflow", None)
            options.pop("pool_recycle", None)
            options.setdefault("poolclass", StaticPool)
            options.setdefault("connect_args", {"check_same_thread": False})
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **options)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.connected = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )

    async def connect(
        self,
        attempts: int = 1,
        min_wait: float = 1,
        max_wait: float = 10,
        create_tables: bool = False,
    ) -> None:
        """
        Verify the database is reachable, retrying with exponential backoff.

        Raises the last connection error once all attempts are exhausted.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                async with self.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))

        if create_tables:
            await self.create_all()
        self.connected = True
        logger.info("DB connection successful!")

    async def create_all(self) -> None:
        """Create every table registered on Base.metadata that does not exist."""
        # Model modules must be imported so their tables are registered
        import natours.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
        self.connected = False


def get_database(request: Request) -> Database:
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("No Database attached to the application")
    return database


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Commits when the handler returns, rolls back if it raises, and always
    returns the connection to the pool. Errors propagate to the global
    error handler.
    """
    database = get_database(request)
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
