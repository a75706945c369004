"""
FindMyHelper Backend — Database Engine & Declarative Base
===========================================================

What:  Declarative base for the ORM models plus engine / session factory
       builders used by DatabaseStorage and alembic.
How:   Engines are built on demand from a URL instead of at import time,
       so the in-memory storage backend never touches a database driver.

Connection Pooling:
    pool_size / max_overflow come from settings for server databases.
    SQLite (tests, local demos) uses SQLAlchemy's default pool for the
    dialect and ignores the sizing options.
"""

from datetime import datetime, timezone

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

from findmyhelper.config import Settings, settings as default_settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """SQLite hands back naive datetimes even for timezone=True columns."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Base(MappedAsDataclass, DeclarativeBase, kw_only=True, eq=False):
    """
    Base class for all SQLAlchemy ORM models.

    Models are dataclass-mapped: Python-side defaults are applied in
    __init__, so MemoryStorage gets fully populated objects without a
    session flush. Models register on `Base.metadata`, which alembic and
    DatabaseStorage.initialize() read to build the schema.
    """
    pass


def create_engine(database_url: str, config: Settings | None = None) -> AsyncEngine:
    """
    Build an async engine for `database_url`.

    Args:
        database_url: SQLAlchemy async URL (postgresql+asyncpg, sqlite+aiosqlite, ...)
        config: Settings providing pool sizing; defaults to the global settings.
    """
    config = config or default_settings
    url = make_url(database_url)

    engine_kwargs: dict = {
        "echo": config.log_level == "DEBUG",
        "pool_pre_ping": config.db_pool_pre_ping,
    }
    if not url.get_backend_name().startswith("sqlite"):
        engine_kwargs.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_recycle=3600,
        )

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False keeps attribute access working on objects
    returned after the unit of work has committed.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
