"""Convert uploaded images into size-bounded inline ``data:`` URLs."""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable

from PIL import Image, ImageOps, UnidentifiedImageError

from ..constants import DATA_URL_IMAGE_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 1200
DEFAULT_QUALITY = 0.8
DEFAULT_MAX_SIZE_KB = 500
DEFAULT_MIN_QUALITY = 0.3

_RECOMPRESS_START_QUALITY = 0.7
_RECOMPRESS_STEP = 0.1
_PNG_SAFE_MODES = {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}


class ImageEncodingError(ValueError):
    """Raised when image bytes cannot be decoded or re-encoded."""


class UnsupportedImageError(ImageEncodingError):
    """Raised when the supplied content type is not an image type."""


@dataclass(frozen=True, slots=True)
class EncodedImage:
    """An encoded inline image plus the dimensions it was rendered at."""

    data_url: str
    mime_type: str
    width: int
    height: int
    size_bytes: int


def is_data_url(value: str | None) -> bool:
    """Return True when ``value`` is an inline image data URL."""

    if not value:
        return False
    return value.startswith(DATA_URL_IMAGE_PREFIX)


def data_url_size(data_url: str) -> int:
    """Return the decoded byte size of a base64 data URL payload."""

    _, _, payload = (data_url or "").partition(",")
    if not payload:
        return 0
    padding = payload.count("=")
    return (len(payload) * 3) // 4 - padding


def calculate_dimensions(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Fit ``width`` x ``height`` inside the bounding box, keeping the aspect ratio."""

    if width <= max_width and height <= max_height:
        return width, height

    aspect_ratio = width / height
    new_width: float = width
    new_height: float = height

    if width > max_width:
        new_width = max_width
        new_height = new_width / aspect_ratio

    if new_height > max_height:
        new_height = max_height
        new_width = new_height * aspect_ratio

    return max(1, round(new_width)), max(1, round(new_height))


def optimal_quality(size_bytes: int) -> float:
    """Larger sources get more aggressive compression."""

    if size_bytes > 5 * 1024 * 1024:
        return 0.7
    if size_bytes > 2 * 1024 * 1024:
        return 0.8
    if size_bytes > 1 * 1024 * 1024:
        return 0.85
    return 0.9


def _pillow_quality(quality: float) -> int:
    return max(1, min(95, round(quality * 100)))


def _open_image(content: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise ImageEncodingError("Failed to load image") from exc
    return ImageOps.exif_transpose(image)


def image_dimensions(content: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` of the encoded image."""

    try:
        with Image.open(BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageEncodingError("Failed to read image dimensions") from exc


def _flatten_for_jpeg(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _render(image: Image.Image, mime_type: str, quality: float) -> bytes:
    buffer = BytesIO()
    try:
        if mime_type == "image/png":
            if image.mode not in _PNG_SAFE_MODES:
                image = image.convert("RGBA")
            image.save(buffer, format="PNG", optimize=True)
        else:
            _flatten_for_jpeg(image).save(buffer, format="JPEG", quality=_pillow_quality(quality))
    except (OSError, ValueError) as exc:
        raise ImageEncodingError(f"Failed to encode image as {mime_type}") from exc
    return buffer.getvalue()


def _to_data_url(mime_type: str, raw: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


def encode_image(
    content: bytes,
    *,
    content_type: str | None,
    filename: str | None = None,
    max_width: int = DEFAULT_MAX_WIDTH,
    max_height: int | None = None,
    quality: float = DEFAULT_QUALITY,
) -> EncodedImage:
    """Downscale ``content`` to ``max_width`` (and ``max_height`` when given) and encode it as a data URL.

    PNG sources stay PNG; everything else is re-encoded as JPEG at ``quality``
    (a 0..1 factor). Raises :class:`UnsupportedImageError` for non-image content
    types and :class:`ImageEncodingError` when decoding fails.
    """

    mime = (content_type or "").strip().lower()
    if not mime.startswith("image/"):
        raise UnsupportedImageError("File is not an image")
    if max_width < 1:
        raise ValueError("max_width must be a positive pixel count")

    image = _open_image(content)
    source_size = image.size
    width, height = calculate_dimensions(*source_size, max_width, max_height or source_size[1])
    if (width, height) != source_size:
        image = image.resize((width, height), Image.Resampling.LANCZOS)

    output_mime = "image/png" if mime == "image/png" else "image/jpeg"
    raw = _render(image, output_mime, quality)
    data_url = _to_data_url(output_mime, raw)

    logger.debug("Converted image to data URL: %s (%dKB)", filename or "<upload>", round(len(data_url) / 1024))
    return EncodedImage(
        data_url=data_url,
        mime_type=output_mime,
        width=width,
        height=height,
        size_bytes=len(raw),
    )


def file_to_data_url(
    content: bytes,
    *,
    content_type: str | None,
    filename: str | None = None,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> str:
    """Return only the data URL produced by :func:`encode_image`."""

    return encode_image(
        content,
        content_type=content_type,
        filename=filename,
        max_width=max_width,
        quality=quality,
    ).data_url


def files_to_data_urls(
    files: Iterable[tuple[bytes, str | None]],
    *,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> list[str]:
    """Encode ``(content, content_type)`` pairs in order; the first failure aborts the batch."""

    return [
        file_to_data_url(content, content_type=content_type, max_width=max_width, quality=quality)
        for content, content_type in files
    ]


def _decode_data_url(data_url: str) -> bytes:
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith(DATA_URL_IMAGE_PREFIX) or ";base64" not in header:
        raise ImageEncodingError("Value is not a base64 image data URL")
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImageEncodingError("Data URL payload is not valid base64") from exc


def compress_data_url_if_needed(
    data_url: str,
    *,
    max_size_kb: int = DEFAULT_MAX_SIZE_KB,
    min_quality: float = DEFAULT_MIN_QUALITY,
) -> str:
    """Re-encode ``data_url`` as JPEG at decreasing quality until it fits ``max_size_kb``.

    Input already within budget is returned unchanged. When even ``min_quality``
    is not enough, the smallest attempt is returned.
    """

    current_size = data_url_size(data_url)
    max_size = max_size_kb * 1024
    if current_size <= max_size:
        return data_url

    image = _open_image(_decode_data_url(data_url))

    quality = _RECOMPRESS_START_QUALITY
    result = _to_data_url("image/jpeg", _render(image, "image/jpeg", quality))
    while data_url_size(result) > max_size and quality > min_quality:
        quality = round(quality - _RECOMPRESS_STEP, 2)
        result = _to_data_url("image/jpeg", _render(image, "image/jpeg", quality))

    logger.info(
        "Compressed image from %dKB to %dKB (quality: %.1f)",
        round(current_size / 1024),
        round(data_url_size(result) / 1024),
        quality,
    )
    return result


__all__ = [
    "DEFAULT_MAX_WIDTH",
    "DEFAULT_QUALITY",
    "DEFAULT_MAX_SIZE_KB",
    "DEFAULT_MIN_QUALITY",
    "EncodedImage",
    "ImageEncodingError",
    "UnsupportedImageError",
    "calculate_dimensions",
    "compress_data_url_if_needed",
    "data_url_size",
    "encode_image",
    "file_to_data_url",
    "files_to_data_urls",
    "image_dimensions",
    "is_data_url",
    "optimal_quality",
]
