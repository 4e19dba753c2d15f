"""Profile photo update endpoints backed by the in-process broadcaster."""
from __future__ import annotations

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from ..config import get_settings
from ..schemas import (
    ProfileCacheClearResponse,
    ProfilePhotoResponse,
    ProfilePhotoUpdateRequest,
    ProfileRefresh,
)
from ..services import (
    ImageEncodingError,
    compress_data_url_if_needed,
    create_immediate_photo_url,
    encode_image,
    profile_broadcaster,
    profile_photo_cache,
    update_profile_photo,
)
from .media import encoding_http_error, read_image_upload

router = APIRouter(prefix="/profiles", tags=["profiles"])

settings = get_settings()


def _encode_profile_image(content: bytes, content_type: str | None, filename: str | None) -> str:
    encoded = encode_image(
        content,
        content_type=content_type,
        filename=filename,
        max_width=settings.image_max_width,
        quality=settings.image_quality,
    )
    return compress_data_url_if_needed(
        encoded.data_url,
        max_size_kb=settings.image_max_size_kb,
        min_quality=settings.image_min_quality,
    )


def _publish(user_id: str, image_data: str, display_name: str | None, handle: str | None) -> ProfilePhotoResponse:
    update = update_profile_photo(user_id, image_data, display_name=display_name, handle=handle)
    return ProfilePhotoResponse(
        user_id=user_id,
        image_data=update.image_data,
        display_url=create_immediate_photo_url(update.image_data),
        timestamp=update.timestamp,
    )


@router.post("/{user_id}/photo", response_model=ProfilePhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_profile_photo(
    user_id: str,
    file: UploadFile = File(...),
    display_name: str | None = Form(default=None),
    handle: str | None = Form(default=None),
) -> ProfilePhotoResponse:
    """Encode an uploaded avatar and announce it to every listener."""

    content = await read_image_upload(file)
    try:
        image_data = await run_in_threadpool(_encode_profile_image, content, file.content_type, file.filename)
    except ImageEncodingError as exc:
        raise encoding_http_error(exc) from exc
    return await run_in_threadpool(_publish, user_id, image_data, display_name, handle)


@router.put("/{user_id}/photo", response_model=ProfilePhotoResponse)
async def set_profile_photo(user_id: str, payload: ProfilePhotoUpdateRequest) -> ProfilePhotoResponse:
    """Announce an image that is already hosted or already inline."""

    return await run_in_threadpool(_publish, user_id, payload.image_data, payload.display_name, payload.handle)


@router.get("/{user_id}/photo", response_model=ProfilePhotoResponse)
async def get_profile_photo(user_id: str) -> ProfilePhotoResponse:
    image_data = await run_in_threadpool(profile_photo_cache.get, user_id)
    if image_data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile photo not cached")
    last = profile_broadcaster.last_update(user_id)
    return ProfilePhotoResponse(
        user_id=user_id,
        image_data=image_data,
        timestamp=last.timestamp if last is not None else None,
    )


@router.delete("/{user_id}/photo", response_model=ProfileCacheClearResponse)
async def clear_profile_photo(user_id: str) -> ProfileCacheClearResponse:
    cleared = await run_in_threadpool(profile_photo_cache.clear, user_id)
    return ProfileCacheClearResponse(user_id=user_id, cleared=cleared)


@router.post("/refresh", response_model=ProfileRefresh)
async def force_refresh_profiles() -> ProfileRefresh:
    return profile_broadcaster.force_refresh_all()


__all__ = ["router"]
