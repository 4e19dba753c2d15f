"""Engine and session factory backing the photo and profile caches."""
from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        # Cache calls run on threadpool workers and redelivery timers.
        options["connect_args"] = {"check_same_thread": False}
    return options


engine: Engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)

Base = declarative_base()


def create_session() -> Session:
    """Open a session for one cache operation; the caller commits and closes it."""
    return SessionLocal()


def init_db() -> None:
    """Create the cache tables when missing."""
    # Models must be registered on the metadata before create_all runs.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = [
    "Base",
    "SessionLocal",
    "create_session",
    "engine",
    "init_db",
]
