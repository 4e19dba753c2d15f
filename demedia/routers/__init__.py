"""Aggregate router exports."""
from .media import router as media_router
from .photo_cache import router as photo_cache_router
from .profiles import router as profiles_router
from .realtime import router as realtime_router

__all__ = [
    "media_router",
    "photo_cache_router",
    "profiles_router",
    "realtime_router",
]
