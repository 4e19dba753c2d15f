"""SQLAlchemy ORM models for the local image caches."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from demedia.database import Base


class CachedPostPhoto(Base):
    """Inline image payload cached for a post, keyed by ``(post_id, photo_index)``."""

    __tablename__ = "cached_post_photos"

    post_id = Column(String(255), primary_key=True)
    photo_index = Column(Integer, primary_key=True, autoincrement=False)
    data = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_cached_post_photos_post_id", "post_id"),
        Index("ix_cached_post_photos_created_at", "created_at"),
    )


class ProfilePhotoCacheEntry(Base):
    """Last known profile image per user; entries go stale after the cache TTL."""

    __tablename__ = "profile_photo_cache"

    user_id = Column(String(255), primary_key=True)
    image_data = Column(Text, nullable=False)
    cached_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


__all__ = ["CachedPostPhoto", "ProfilePhotoCacheEntry"]
