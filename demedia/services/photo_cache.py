"""Per-post cache of inline image payloads.

The cache is a display fallback for when the remote origin fails to persist or
serve a post image. Every operation is best-effort: storage failures are
logged and mapped to empty results instead of propagating to the caller.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence, TypeVar

from sqlalchemy import delete, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import PHOTO_CACHE_RETENTION
from ..database import create_session
from ..models import CachedPostPhoto
from .image_encoder import is_data_url

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CacheStatus(str, enum.Enum):
    UNAVAILABLE = "unavailable"
    EMPTY = "empty"
    FOUND = "found"


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """Outcome of a cache read, distinguishing "nothing cached" from "store unreachable"."""

    status: CacheStatus
    photos: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.status is CacheStatus.FOUND


@dataclass(frozen=True, slots=True)
class PhotoCacheStats:
    """Counts and age range of the cached payloads; ``available`` is False when the store is unreachable."""

    available: bool
    photo_count: int = 0
    post_count: int = 0
    total_bytes: int = 0
    oldest: datetime | None = None
    newest: datetime | None = None


class PostPhotoCache:
    """Stores inline image payloads keyed by ``(post_id, photo_index)``."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        retention: timedelta = PHOTO_CACHE_RETENTION,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if retention <= timedelta(0):
            raise ValueError("retention must be a positive duration")
        self._session_factory = session_factory
        self._clock = clock
        self.retention = retention

    def _run(self, description: str, operation: Callable[[Session], T]) -> T | None:
        """Run ``operation`` in its own transaction; ``None`` means the store was unavailable."""

        session: Session | None = None
        try:
            session = self._session_factory()
            result = operation(session)
            session.commit()
            return result
        except SQLAlchemyError:
            logger.warning("Photo cache unavailable while trying to %s", description, exc_info=True)
            if session is not None:
                try:
                    session.rollback()
                except SQLAlchemyError:
                    logger.warning("Rollback failed after trying to %s", description, exc_info=True)
            return None
        finally:
            if session is not None:
                session.close()

    def store(self, post_id: str | int, photos: Sequence[str]) -> int:
        """Cache ``photos`` for ``post_id`` and return how many payloads were written.

        Entries that are not inline image data keep their slot empty, and any
        slot cached by an earlier call but not written by this one is dropped,
        so a later fetch mirrors this call.
        """

        key = str(post_id)
        records = [(index, payload) for index, payload in enumerate(photos) if is_data_url(payload)]
        if not records:
            return 0

        created_at = self._clock()
        kept = [index for index, _ in records]

        def _store(session: Session) -> int:
            session.execute(
                delete(CachedPostPhoto).where(
                    CachedPostPhoto.post_id == key,
                    CachedPostPhoto.photo_index.not_in(kept),
                )
            )
            for index, payload in records:
                session.merge(
                    CachedPostPhoto(post_id=key, photo_index=index, data=payload, created_at=created_at)
                )
            return len(records)

        written = self._run(f"store photos for post {key}", _store)
        if written:
            logger.debug("Stored %d photos for post %s", written, key)
        return written or 0

    def lookup(self, post_id: str | int) -> CacheLookup:
        key = str(post_id)

        def _lookup(session: Session) -> list[str]:
            stmt = (
                select(CachedPostPhoto.data)
                .where(CachedPostPhoto.post_id == key)
                .order_by(CachedPostPhoto.photo_index.asc())
            )
            return list(session.scalars(stmt))

        photos = self._run(f"read photos for post {key}", _lookup)
        if photos is None:
            return CacheLookup(CacheStatus.UNAVAILABLE)
        if not photos:
            return CacheLookup(CacheStatus.EMPTY)
        return CacheLookup(CacheStatus.FOUND, tuple(photos))

    def fetch(self, post_id: str | int) -> list[str]:
        """Return the cached payloads for ``post_id`` in index order, or ``[]``."""

        return list(self.lookup(post_id).photos)

    def fetch_one(self, post_id: str | int, photo_index: int) -> str | None:
        key = str(post_id)

        def _fetch_one(session: Session) -> str | None:
            record = session.get(CachedPostPhoto, (key, photo_index))
            return record.data if record is not None else None

        return self._run(f"read photo {photo_index} for post {key}", _fetch_one)

    def remove(self, post_id: str | int) -> int:
        """Delete every cached payload for ``post_id``."""

        key = str(post_id)

        def _remove(session: Session) -> int:
            result = session.execute(delete(CachedPostPhoto).where(CachedPostPhoto.post_id == key))
            return int(result.rowcount or 0)

        removed = self._run(f"delete photos for post {key}", _remove) or 0
        if removed:
            logger.debug("Deleted %d cached photos for post %s", removed, key)
        return removed

    def expire(self, *, now: datetime | None = None) -> int | None:
        """Delete payloads at or past the retention window.

        Returns the number of rows removed, or ``None`` when the store could
        not be reached.
        """

        cutoff = (now or self._clock()) - self.retention

        def _expire(session: Session) -> int:
            result = session.execute(delete(CachedPostPhoto).where(CachedPostPhoto.created_at <= cutoff))
            return int(result.rowcount or 0)

        removed = self._run("clean up expired photos", _expire)
        if removed:
            logger.info("Cleaned up %d cached post photos", removed)
        return removed

    def cleanup(self, *, now: datetime | None = None) -> int:
        """Delete expired payloads and return the count removed."""

        return self.expire(now=now) or 0

    def stats(self) -> PhotoCacheStats:
        """Summarise what the cache currently holds."""

        def _stats(session: Session) -> PhotoCacheStats:
            row = session.execute(
                select(
                    func.count(),
                    func.count(distinct(CachedPostPhoto.post_id)),
                    func.coalesce(func.sum(func.length(CachedPostPhoto.data)), 0),
                    func.min(CachedPostPhoto.created_at),
                    func.max(CachedPostPhoto.created_at),
                ).select_from(CachedPostPhoto)
            ).one()
            photo_count, post_count, total_bytes, oldest, newest = row
            return PhotoCacheStats(
                available=True,
                photo_count=int(photo_count),
                post_count=int(post_count),
                total_bytes=int(total_bytes),
                oldest=_as_utc(oldest),
                newest=_as_utc(newest),
            )

        stats = self._run("collect photo cache statistics", _stats)
        return stats if stats is not None else PhotoCacheStats(available=False)

    def is_available(self) -> bool:
        return self.stats().available


post_photo_cache = PostPhotoCache(
    create_session,
    retention=timedelta(days=get_settings().photo_cache_retention_days),
)


__all__ = [
    "CacheLookup",
    "CacheStatus",
    "PhotoCacheStats",
    "PostPhotoCache",
    "post_photo_cache",
]
