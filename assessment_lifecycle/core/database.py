"""Database configuration and session management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from assessment_lifecycle.core.config import settings


def _enable_sqlite_savepoints(target: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work on the sqlite driver."""

    @event.listens_for(target.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine_for_url(database_url: str, echo: Optional[bool] = None) -> AsyncEngine:
    """Create an async engine, applying driver specific connection settings."""
    if echo is None:
        echo = settings.DEBUG

    if database_url.startswith("sqlite"):
        # In-memory databases only live as long as their single connection
        poolclass = StaticPool if ":memory:" in database_url else NullPool
        sqlite_engine = create_async_engine(
            database_url,
            echo=echo,
            poolclass=poolclass,
            connect_args={"check_same_thread": False},
        )
        _enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool,
        future=True,
        connect_args={
            "server_settings": {
                "jit": "off",
                "statement_timeout": str(settings.DATABASE_STATEMENT_TIMEOUT_MS),
            },
            "command_timeout": settings.DATABASE_STATEMENT_TIMEOUT_MS // 1000,
        },
    )


# Create async engine
engine = create_engine_for_url(settings.DATABASE_URL)

# Create session factory
async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get async database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a unit of work on ``db``: commit on success, roll back and re-raise on error."""
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def init_db(target: Optional[AsyncEngine] = None) -> None:
    """Initialize database tables."""
    from assessment_lifecycle.models.base import Base
    import assessment_lifecycle.models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(target: Optional[AsyncEngine] = None) -> None:
    """Drop all database tables."""
    from assessment_lifecycle.models.base import Base
    import assessment_lifecycle.models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
