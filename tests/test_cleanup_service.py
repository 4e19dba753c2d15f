"""Regression tests for the age-based cache cleanup pass."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

# Ensure the database URL is available before importing application modules.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_cleanup_service.db")
os.environ.setdefault("DISABLE_CLEANUP", "true")

from demedia import main  # noqa: E402
from demedia.database import Base, SessionLocal, engine  # noqa: E402
from demedia.models import CachedPostPhoto, ProfilePhotoCacheEntry  # noqa: E402
from demedia.services import cleanup_service  # noqa: E402
from demedia.services.cleanup_service import CleanupError, CleanupSummary, perform_cleanup  # noqa: E402
from demedia.services.photo_cache import PostPhotoCache  # noqa: E402
from demedia.services.profile_cache import ProfilePhotoCache  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(CachedPostPhoto))
        session.execute(delete(ProfilePhotoCacheEntry))
        session.commit()
    yield


def test_perform_cleanup_prunes_both_caches() -> None:
    now = datetime.now(timezone.utc)
    eight_days_ago = now - timedelta(days=8)
    two_hours_ago = now - timedelta(hours=2)

    PostPhotoCache(SessionLocal, clock=lambda: eight_days_ago).store("old", ["data:image/png;base64,AAAA"])
    PostPhotoCache(SessionLocal, clock=lambda: now).store("new", ["data:image/png;base64,BBBB"])
    ProfilePhotoCache(SessionLocal, clock=lambda: two_hours_ago).update("stale", "data:image/png;base64,CCCC")
    ProfilePhotoCache(SessionLocal, clock=lambda: now).update("fresh", "data:image/png;base64,DDDD")

    summary = perform_cleanup(PostPhotoCache(SessionLocal), ProfilePhotoCache(SessionLocal), now=now)

    assert summary == CleanupSummary(post_photos=1, profile_photos=1)
    assert summary.total == 2
    assert PostPhotoCache(SessionLocal).fetch("new") == ["data:image/png;base64,BBBB"]
    assert ProfilePhotoCache(SessionLocal).get("fresh") == "data:image/png;base64,DDDD"


def test_perform_cleanup_on_empty_caches_reports_zero() -> None:
    summary = perform_cleanup(PostPhotoCache(SessionLocal), ProfilePhotoCache(SessionLocal))

    assert summary.total == 0


def test_run_cleanup_uses_application_caches(monkeypatch) -> None:
    calls: list[tuple[object, object]] = []

    def _fake_perform(photo_cache, profile_cache, *, now=None):
        calls.append((photo_cache, profile_cache))
        return CleanupSummary(post_photos=0, profile_photos=0)

    monkeypatch.setattr(cleanup_service, "perform_cleanup", _fake_perform)

    cleanup_service.run_cleanup()

    assert calls == [(cleanup_service.post_photo_cache, cleanup_service.profile_photo_cache)]


def test_perform_cleanup_raises_when_a_store_is_unreachable() -> None:
    bare = sessionmaker(bind=create_engine("sqlite+pysqlite:///:memory:", future=True))
    now = datetime.now(timezone.utc)
    PostPhotoCache(SessionLocal, clock=lambda: now - timedelta(days=9)).store("old", ["data:image/png;base64,AAAA"])

    with pytest.raises(CleanupError, match="profile photo cache"):
        perform_cleanup(PostPhotoCache(SessionLocal), ProfilePhotoCache(bare), now=now)

    # The reachable cache still committed its deletions.
    assert PostPhotoCache(SessionLocal).fetch("old") == []


def test_scheduled_cleanup_logs_cleanup_errors(monkeypatch, caplog) -> None:
    def _failing_cleanup() -> CleanupSummary:
        raise CleanupError("cleanup could not reach the post photo cache")

    monkeypatch.setattr(main, "run_cleanup", _failing_cleanup)

    with caplog.at_level(logging.ERROR, logger="demedia.main"):
        asyncio.run(main._run_cleanup_once())

    assert "Scheduled cleanup failed" in caplog.text


def test_scheduled_cleanup_logs_summary(monkeypatch, caplog) -> None:
    monkeypatch.setattr(main, "run_cleanup", lambda: CleanupSummary(post_photos=2, profile_photos=1))

    with caplog.at_level(logging.INFO, logger="demedia.main"):
        asyncio.run(main._run_cleanup_once())

    assert "total=3" in caplog.text
