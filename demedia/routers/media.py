"""Image encoding endpoints used by upload flows before posting."""
from __future__ import annotations

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from ..config import get_settings
from ..schemas import EncodedImageResponse, MediaCompressRequest, MediaCompressResponse, MediaEncodeResponse
from ..services import (
    ImageEncodingError,
    UnsupportedImageError,
    compress_data_url_if_needed,
    data_url_size,
    encode_image,
)

router = APIRouter(prefix="/media", tags=["media"])

settings = get_settings()


async def read_image_upload(file: UploadFile) -> bytes:
    """Read an uploaded file, rejecting payloads above the configured size limit."""

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"{file.filename or 'Upload'} exceeds the {settings.max_upload_bytes // 1024}KB limit.",
        )
    return content


def encoding_http_error(exc: ImageEncodingError) -> HTTPException:
    if isinstance(exc, UnsupportedImageError):
        return HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.post("/encode", response_model=MediaEncodeResponse)
async def encode_media(
    files: list[UploadFile] = File(...),
    max_width: int = Form(default=settings.image_max_width, gt=0),
    max_height: int | None = Form(default=None, gt=0),
    quality: float = Form(default=settings.image_quality, gt=0, le=1),
) -> MediaEncodeResponse:
    """Convert uploaded images into inline data URLs, downscaled to ``max_width``."""

    items: list[EncodedImageResponse] = []
    for file in files:
        content = await read_image_upload(file)
        try:
            encoded = await run_in_threadpool(
                encode_image,
                content,
                content_type=file.content_type,
                filename=file.filename,
                max_width=max_width,
                max_height=max_height,
                quality=quality,
            )
        except ImageEncodingError as exc:
            raise encoding_http_error(exc) from exc
        items.append(
            EncodedImageResponse(
                data_url=encoded.data_url,
                mime_type=encoded.mime_type,
                width=encoded.width,
                height=encoded.height,
                size_bytes=encoded.size_bytes,
            )
        )
    return MediaEncodeResponse(items=items)


@router.post("/compress", response_model=MediaCompressResponse)
async def compress_media(payload: MediaCompressRequest) -> MediaCompressResponse:
    """Shrink an inline image until it fits ``max_size_kb``."""

    try:
        result = await run_in_threadpool(
            compress_data_url_if_needed,
            payload.data_url,
            max_size_kb=payload.max_size_kb,
            min_quality=payload.min_quality,
        )
    except ImageEncodingError as exc:
        raise encoding_http_error(exc) from exc

    return MediaCompressResponse(
        data_url=result,
        original_size=data_url_size(payload.data_url),
        size=data_url_size(result),
    )


__all__ = ["router", "read_image_upload", "encoding_http_error"]
