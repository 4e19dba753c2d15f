"""Convenience exports for ORM models."""
from .photo_cache import CachedPostPhoto, ProfilePhotoCacheEntry

__all__ = [
    "CachedPostPhoto",
    "ProfilePhotoCacheEntry",
]
