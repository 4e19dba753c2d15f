"""Automated cleanup utilities for pruning expired cache entries."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .photo_cache import PostPhotoCache, post_photo_cache
from .profile_cache import ProfilePhotoCache, profile_photo_cache

logger = logging.getLogger(__name__)


class CleanupError(RuntimeError):
    """Raised when a cleanup pass cannot reach one of the cache stores."""


@dataclass(frozen=True, slots=True)
class CleanupSummary:
    """Represents the number of cache entries deleted during a cleanup run."""

    post_photos: int
    profile_photos: int

    @property
    def total(self) -> int:
        """Return the total number of deleted rows."""

        return self.post_photos + self.profile_photos


def perform_cleanup(
    photo_cache: PostPhotoCache,
    profile_cache: ProfilePhotoCache,
    *,
    now: datetime | None = None,
) -> CleanupSummary:
    """Delete aged entries from both caches.

    Parameters
    ----------
    photo_cache:
        Post photo cache; rows at or past its retention window are removed.
    profile_cache:
        Profile photo cache; rows at or past its freshness window are removed.
    now:
        Reference time for the cutoffs. Defaults to the current UTC time.

    Returns
    -------
    CleanupSummary
        Counts describing how many rows were removed per cache.

    Raises
    ------
    CleanupError
        If either store could not be reached. The cache that did respond has
        already committed its deletions.
    """

    reference = now or datetime.now(timezone.utc)
    post_photos = photo_cache.expire(now=reference)
    profile_photos = profile_cache.expire(now=reference)

    unavailable = [
        name
        for name, removed in (("post photo cache", post_photos), ("profile photo cache", profile_photos))
        if removed is None
    ]
    if unavailable:
        raise CleanupError(f"cleanup could not reach the {' and '.join(unavailable)}")

    summary = CleanupSummary(post_photos=post_photos or 0, profile_photos=profile_photos or 0)
    logger.info(
        "Cleanup finished (post_photos=%d, profile_photos=%d, total=%d)",
        summary.post_photos,
        summary.profile_photos,
        summary.total,
    )
    return summary


def run_cleanup() -> CleanupSummary:
    """Run cleanup against the application-wide cache instances."""

    return perform_cleanup(post_photo_cache, profile_photo_cache)


__all__ = [
    "CleanupError",
    "CleanupSummary",
    "perform_cleanup",
    "run_cleanup",
]
