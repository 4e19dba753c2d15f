"""Project-wide constant values."""
from __future__ import annotations

from datetime import timedelta

PROFILE_UPDATE_EVENTS: tuple[str, ...] = (
    "profile:updated",
    "user:updated",
    "avatar:updated",
    "profilePhoto:changed",
)
PROFILE_FORCE_REFRESH_EVENT = "profile:forceRefresh"

PHOTO_CACHE_RETENTION = timedelta(days=7)
PROFILE_CACHE_TTL = timedelta(hours=1)

DATA_URL_IMAGE_PREFIX = "data:image/"

__all__ = [
    "PROFILE_UPDATE_EVENTS",
    "PROFILE_FORCE_REFRESH_EVENT",
    "PHOTO_CACHE_RETENTION",
    "PROFILE_CACHE_TTL",
    "DATA_URL_IMAGE_PREFIX",
]
