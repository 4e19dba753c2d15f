"""Convenience exports for schema layer."""
from .media import (
    EncodedImageResponse,
    MediaCompressRequest,
    MediaCompressResponse,
    MediaEncodeResponse,
    PhotoCacheCleanupResponse,
    PhotoCacheStatsResponse,
    PostPhotoResponse,
    PostPhotosDeleteResponse,
    PostPhotosResponse,
    PostPhotosStoreRequest,
    PostPhotosStoreResponse,
)
from .profiles import (
    ProfileCacheClearResponse,
    ProfilePhotoResponse,
    ProfilePhotoUpdateRequest,
    ProfileRefresh,
    ProfileUpdate,
)

__all__ = [
    "EncodedImageResponse",
    "MediaCompressRequest",
    "MediaCompressResponse",
    "MediaEncodeResponse",
    "PhotoCacheCleanupResponse",
    "PhotoCacheStatsResponse",
    "PostPhotoResponse",
    "PostPhotosDeleteResponse",
    "PostPhotosResponse",
    "PostPhotosStoreRequest",
    "PostPhotosStoreResponse",
    "ProfileCacheClearResponse",
    "ProfilePhotoResponse",
    "ProfilePhotoUpdateRequest",
    "ProfileRefresh",
    "ProfileUpdate",
]
