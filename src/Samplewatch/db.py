# src/Samplewatch/db.py
from __future__ import annotations

import contextlib
import os
from collections.abc import AsyncIterator

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from Samplewatch.config import load_settings

settings = load_settings()
log = structlog.get_logger()


def _normalize_url(url: str) -> str:
    # Upgrade to async drivers if user supplies sync URLs
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


DATABASE_URL = _normalize_url(settings.database_url)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_schema_initialized: bool = False


def get_engine() -> AsyncEngine:
    global _engine, _sessionmaker
    if _engine is None:
        kwargs: dict[str, object] = {}
        if DATABASE_URL.startswith("sqlite+aiosqlite://"):
            kwargs.update(connect_args={"timeout": 30})
            # In-memory DBs must share a single connection so the schema persists
            if ":memory:" in DATABASE_URL:
                kwargs.update(poolclass=StaticPool)
            if os.environ.get("SAMPLEWATCH_SQLITE_STATIC_POOL") == "1":
                kwargs.update(poolclass=StaticPool)
        elif DATABASE_URL.startswith("postgresql+asyncpg://"):
            kwargs.update(
                pool_pre_ping=True,
                pool_size=5,
                max_overflow=10,
                pool_timeout=30,
            )

        _engine = create_async_engine(DATABASE_URL, **kwargs)
        _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)

        url = make_url(DATABASE_URL)
        backend = "postgres" if DATABASE_URL.startswith("postgresql") else (
            "sqlite" if DATABASE_URL.startswith("sqlite") else "other"
        )
        log.info(
            "db.connection.config",
            backend=backend,
            host=url.host or "",
            database=url.database or "",
            driver=url.drivername,
        )
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        get_engine()
    return _sessionmaker  # type: ignore[return-value]


async def init_db() -> None:
    """Create every table registered on ``Base.metadata``."""
    from Samplewatch import models as _models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _ensure_schema_created_if_needed() -> None:
    """Create tables for in-memory SQLite, which starts empty on every engine."""
    global _schema_initialized
    if _schema_initialized:
        return
    if DATABASE_URL.startswith("sqlite+aiosqlite://") and ":memory:" in DATABASE_URL:
        await init_db()
    _schema_initialized = True


@contextlib.asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    await _ensure_schema_created_if_needed()
    sm = get_sessionmaker()
    async with sm() as s:
        try:
            yield s
            await s.commit()
        except Exception:
            log.error("db.session.error", exc_info=True)
            await s.rollback()
            raise


async def dispose_engine() -> None:
    global _engine, _sessionmaker, _schema_initialized
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
    _schema_initialized = False
