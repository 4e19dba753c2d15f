"""Short-lived cache of the last profile image seen for each user."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, TypeVar

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import PROFILE_CACHE_TTL
from ..database import create_session
from ..models import ProfilePhotoCacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ProfilePhotoCache:
    """Last-write-wins store of profile images, fresh for ``ttl`` after each write."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        ttl: timedelta = PROFILE_CACHE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self.ttl = ttl

    def _run(self, description: str, operation: Callable[[Session], T], default: T) -> T:
        session: Session | None = None
        try:
            session = self._session_factory()
            result = operation(session)
            session.commit()
            return result
        except SQLAlchemyError:
            logger.warning("Failed to %s", description, exc_info=True)
            if session is not None:
                try:
                    session.rollback()
                except SQLAlchemyError:
                    logger.warning("Rollback failed after trying to %s", description, exc_info=True)
            return default
        finally:
            if session is not None:
                session.close()

    def update(self, user_id: str | int, image_data: str) -> bool:
        key = str(user_id)
        cached_at = self._clock()

        def _update(session: Session) -> bool:
            session.merge(ProfilePhotoCacheEntry(user_id=key, image_data=image_data, cached_at=cached_at))
            return True

        updated = self._run(f"update profile photo cache for user {key}", _update, False)
        if updated:
            logger.debug("Updated profile photo cache for user %s", key)
        return updated

    def get(self, user_id: str | int) -> str | None:
        """Return the cached image for ``user_id`` unless it is missing or stale."""

        key = str(user_id)
        now = self._clock()

        def _get(session: Session) -> str | None:
            entry = session.get(ProfilePhotoCacheEntry, key)
            if entry is None:
                return None
            if now - _as_utc(entry.cached_at) >= self.ttl:
                return None
            return entry.image_data

        return self._run(f"read profile photo cache for user {key}", _get, None)

    def clear(self, user_id: str | int) -> bool:
        key = str(user_id)

        def _clear(session: Session) -> bool:
            result = session.execute(delete(ProfilePhotoCacheEntry).where(ProfilePhotoCacheEntry.user_id == key))
            return bool(result.rowcount)

        return self._run(f"clear profile photo cache for user {key}", _clear, False)

    def clear_all(self) -> int:
        def _clear_all(session: Session) -> int:
            return int(session.execute(delete(ProfilePhotoCacheEntry)).rowcount or 0)

        removed = self._run("clear all profile photo caches", _clear_all, 0)
        logger.info("Cleared %d profile photo cache entries", removed)
        return removed

    def expire(self, *, now: datetime | None = None) -> int | None:
        """Delete entries at or past the freshness window; ``None`` when the store is unreachable."""

        cutoff = (now or self._clock()) - self.ttl

        def _expire(session: Session) -> int:
            result = session.execute(delete(ProfilePhotoCacheEntry).where(ProfilePhotoCacheEntry.cached_at <= cutoff))
            return int(result.rowcount or 0)

        return self._run("purge expired profile photo cache entries", _expire, None)

    def purge_expired(self, *, now: datetime | None = None) -> int:
        return self.expire(now=now) or 0


profile_photo_cache = ProfilePhotoCache(
    create_session,
    ttl=timedelta(seconds=get_settings().profile_cache_ttl_seconds),
)


__all__ = ["ProfilePhotoCache", "profile_photo_cache"]
