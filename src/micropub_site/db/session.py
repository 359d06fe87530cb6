"""Database session configuration."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from micropub_site.core.settings import Settings, settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import micropub_site.models  # noqa: E402,F401


def build_engine(config: Settings) -> Engine:
    """Create an engine whose pool bounds concurrent sessions.

    Callers block for up to ``db_pool_timeout`` seconds when every pooled
    connection is checked out.
    """
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": config.sql_debug,
    }
    if config.is_sqlite:
        # Sessions are handed between FastAPI's worker threads.
        kwargs["connect_args"] = {"check_same_thread": False}
    in_memory = config.database_url in ("sqlite://", "sqlite:///:memory:")
    if not in_memory:
        kwargs.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_timeout=config.db_pool_timeout,
        )
    return create_engine(config.database_url, **kwargs)


engine = build_engine(settings)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
