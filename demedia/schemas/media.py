"""Schemas for image encoding and the post photo cache."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class EncodedImageResponse(BaseModel):
    data_url: str
    mime_type: str
    width: int
    height: int
    size_bytes: int


class MediaEncodeResponse(BaseModel):
    items: list[EncodedImageResponse]


class MediaCompressRequest(BaseModel):
    data_url: str = Field(..., min_length=1)
    max_size_kb: int = Field(default=500, gt=0)
    min_quality: float = Field(default=0.3, gt=0, le=1)


class MediaCompressResponse(BaseModel):
    data_url: str
    original_size: int = Field(..., description="Decoded payload size before compression, in bytes")
    size: int = Field(..., description="Decoded payload size after compression, in bytes")


class PostPhotosStoreRequest(BaseModel):
    photos: list[str] = Field(default_factory=list)


class PostPhotosStoreResponse(BaseModel):
    post_id: str
    stored: int


class PostPhotosResponse(BaseModel):
    post_id: str
    status: Literal["unavailable", "empty", "found"]
    photos: list[str] = Field(default_factory=list)


class PostPhotoResponse(BaseModel):
    post_id: str
    index: int
    data_url: str


class PostPhotosDeleteResponse(BaseModel):
    post_id: str
    removed: int


class PhotoCacheCleanupResponse(BaseModel):
    removed: int


class PhotoCacheStatsResponse(BaseModel):
    available: bool
    photo_count: int
    post_count: int
    total_bytes: int = Field(..., description="Combined length of the cached data URLs")
    oldest: datetime | None = None
    newest: datetime | None = None


__all__ = [
    "EncodedImageResponse",
    "MediaEncodeResponse",
    "MediaCompressRequest",
    "MediaCompressResponse",
    "PostPhotosStoreRequest",
    "PostPhotosStoreResponse",
    "PostPhotosResponse",
    "PostPhotoResponse",
    "PostPhotosDeleteResponse",
    "PhotoCacheCleanupResponse",
    "PhotoCacheStatsResponse",
]
