"""Endpoints exposing the per-post photo cache."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from ..schemas import (
    PhotoCacheCleanupResponse,
    PhotoCacheStatsResponse,
    PostPhotoResponse,
    PostPhotosDeleteResponse,
    PostPhotosResponse,
    PostPhotosStoreRequest,
    PostPhotosStoreResponse,
)
from ..services import post_photo_cache

router = APIRouter(tags=["photo-cache"])


@router.put("/posts/{post_id}/photos", response_model=PostPhotosStoreResponse)
async def store_post_photos(post_id: str, payload: PostPhotosStoreRequest) -> PostPhotosStoreResponse:
    stored = await run_in_threadpool(post_photo_cache.store, post_id, payload.photos)
    return PostPhotosStoreResponse(post_id=post_id, stored=stored)


@router.get("/posts/{post_id}/photos", response_model=PostPhotosResponse)
async def list_post_photos(post_id: str) -> PostPhotosResponse:
    """Return cached photos; ``status`` tells an empty cache apart from an unreachable one."""

    lookup = await run_in_threadpool(post_photo_cache.lookup, post_id)
    return PostPhotosResponse(post_id=post_id, status=lookup.status.value, photos=list(lookup.photos))


@router.get("/posts/{post_id}/photos/{index}", response_model=PostPhotoResponse)
async def get_post_photo(post_id: str, index: int) -> PostPhotoResponse:
    data_url = await run_in_threadpool(post_photo_cache.fetch_one, post_id, index)
    if data_url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not cached")
    return PostPhotoResponse(post_id=post_id, index=index, data_url=data_url)


@router.delete("/posts/{post_id}/photos", response_model=PostPhotosDeleteResponse)
async def delete_post_photos(post_id: str) -> PostPhotosDeleteResponse:
    removed = await run_in_threadpool(post_photo_cache.remove, post_id)
    return PostPhotosDeleteResponse(post_id=post_id, removed=removed)


@router.post("/photo-cache/cleanup", response_model=PhotoCacheCleanupResponse)
async def cleanup_photo_cache() -> PhotoCacheCleanupResponse:
    removed = await run_in_threadpool(post_photo_cache.cleanup)
    return PhotoCacheCleanupResponse(removed=removed)


@router.get("/photo-cache/stats", response_model=PhotoCacheStatsResponse)
async def photo_cache_stats() -> PhotoCacheStatsResponse:
    stats = await run_in_threadpool(post_photo_cache.stats)
    return PhotoCacheStatsResponse(
        available=stats.available,
        photo_count=stats.photo_count,
        post_count=stats.post_count,
        total_bytes=stats.total_bytes,
        oldest=stats.oldest,
        newest=stats.newest,
    )


__all__ = ["router"]
