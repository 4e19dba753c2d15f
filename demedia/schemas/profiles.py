"""Schemas for profile photo updates and the local profile photo cache."""
from __future__ import annotations

import time

from pydantic import BaseModel, Field


def _now_ms() -> float:
    return time.time() * 1000


class ProfileUpdate(BaseModel):
    """Transient message announcing that a user's profile image changed."""

    user_id: str | int
    image_data: str = Field(..., min_length=1, description="Data URL or remote URL of the new image")
    display_name: str | None = None
    handle: str | None = None
    timestamp: float = Field(default_factory=_now_ms, description="Milliseconds since the epoch")


class ProfileRefresh(BaseModel):
    """Asks every listener to reload the profile images it displays."""

    timestamp: float = Field(default_factory=_now_ms)


class ProfilePhotoUpdateRequest(BaseModel):
    image_data: str = Field(..., min_length=1)
    display_name: str | None = Field(default=None, max_length=150)
    handle: str | None = Field(default=None, max_length=150)


class ProfilePhotoResponse(BaseModel):
    user_id: str
    image_data: str
    display_url: str | None = None
    timestamp: float | None = None


class ProfileCacheClearResponse(BaseModel):
    user_id: str
    cleared: bool


__all__ = [
    "ProfileUpdate",
    "ProfileRefresh",
    "ProfilePhotoUpdateRequest",
    "ProfilePhotoResponse",
    "ProfileCacheClearResponse",
]
