# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine and session lifecycle for the approvals datastore.

One async engine per process, created by init_database() at startup and
disposed by close_database(). The family store opens a short session per
operation from get_sessionmaker(); get_session() is the commit/rollback
wrapper for ad-hoc work (scripts, maintenance).

Example:
    await init_database(settings)
    async with get_session() as session:
        await session.execute(select(FamilyApproval).limit(1))
    await close_database()
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from src.core.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


class DatabaseError(Exception):
    """Datastore not initialized, or a session operation failed.

    Attributes:
        message: What went wrong.
        original_error: Underlying SQLAlchemy error, if any.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is not None:
            return f"{self.message}: {self.original_error}"
        return self.message


async def init_database(settings: "Settings") -> None:
    """Create the engine and sessionmaker.

    command_timeout bounds every statement and the wait for a pooled
    connection.

    Raises:
        DatabaseError: If the engine cannot be created.
    """
    global _engine, _sessionmaker

    db = settings.database
    try:
        _engine = create_async_engine(
            db.url,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.command_timeout,
            pool_pre_ping=True,
            pool_recycle=1800,
            connect_args={"timeout": db.command_timeout, "command_timeout": db.command_timeout},
        )
    except SQLAlchemyError as e:
        raise DatabaseError("Could not create database engine", e) from e

    _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False, autoflush=False)


async def close_database() -> None:
    """Dispose of the engine. No-op when not initialized."""
    global _engine, _sessionmaker

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the session factory.

    Raises:
        DatabaseError: If init_database() has not run.
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Session that commits on exit and rolls back on any error.

    Raises:
        DatabaseError: Wrapping SQLAlchemy errors. Other exceptions
            propagate unchanged after the rollback.
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except Exception:
            await session.rollback()
            raise


async def check_database_connection() -> bool:
    """Run SELECT 1. False when not initialized or unreachable."""
    if _engine is None:
        return False
    try:
        async with _engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        return False
    return True
