"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(
    database_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    command_timeout: int = 30,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: Connection URL (sqlite+aiosqlite://... or postgresql+asyncpg://...)
        pool_size: Number of connections to keep in the pool (PostgreSQL only)
        max_overflow: Maximum overflow connections beyond pool_size (PostgreSQL only)
        echo: Whether to log SQL statements
        command_timeout: asyncpg command timeout in seconds

    Returns:
        Configured AsyncEngine instance
    """
    if database_url.startswith("sqlite"):
        # SQLite picks its own pool; a busy timeout keeps concurrent writers waiting
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": 30},
        )

    connect_args: dict[str, Any] = {"command_timeout": command_timeout}

    return create_async_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # Verify connections on checkout
        pool_timeout=30,
        echo=echo,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: The async engine to use

    Returns:
        Session factory that produces AsyncSession instances
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def get_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session that commits on success and rolls back on error.

    Example:
        async with get_session(session_factory) as session:
            result = await session.execute(select(WatchTaskModel))
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
