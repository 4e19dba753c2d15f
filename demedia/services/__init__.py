"""Convenience exports for service layer."""
from .cleanup_service import CleanupError, CleanupSummary, perform_cleanup, run_cleanup
from .image_encoder import (
    EncodedImage,
    ImageEncodingError,
    UnsupportedImageError,
    compress_data_url_if_needed,
    data_url_size,
    encode_image,
    file_to_data_url,
    files_to_data_urls,
    is_data_url,
)
from .photo_cache import CacheLookup, CacheStatus, PhotoCacheStats, PostPhotoCache, post_photo_cache
from .profile_broadcast import (
    ProfilePhotoBroadcaster,
    add_cache_buster,
    create_immediate_photo_url,
    profile_broadcaster,
    update_profile_photo,
)
from .profile_cache import ProfilePhotoCache, profile_photo_cache
from .realtime import WebSocketManager, bridge_profile_updates, profile_updates_manager, wait_for_broadcasts

__all__ = [
    "CleanupError",
    "CleanupSummary",
    "perform_cleanup",
    "run_cleanup",
    "EncodedImage",
    "ImageEncodingError",
    "UnsupportedImageError",
    "compress_data_url_if_needed",
    "data_url_size",
    "encode_image",
    "file_to_data_url",
    "files_to_data_urls",
    "is_data_url",
    "CacheLookup",
    "CacheStatus",
    "PhotoCacheStats",
    "PostPhotoCache",
    "post_photo_cache",
    "ProfilePhotoBroadcaster",
    "add_cache_buster",
    "create_immediate_photo_url",
    "profile_broadcaster",
    "update_profile_photo",
    "ProfilePhotoCache",
    "profile_photo_cache",
    "WebSocketManager",
    "bridge_profile_updates",
    "profile_updates_manager",
    "wait_for_broadcasts",
]
