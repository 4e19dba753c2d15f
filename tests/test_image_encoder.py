"""Tests for the inline image encoder and size-bounded recompression."""
from __future__ import annotations

import base64
import os
from io import BytesIO

import pytest
from PIL import Image

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_image_encoder.db")
os.environ.setdefault("DISABLE_CLEANUP", "true")

from demedia.services.image_encoder import (  # noqa: E402
    ImageEncodingError,
    UnsupportedImageError,
    calculate_dimensions,
    compress_data_url_if_needed,
    data_url_size,
    encode_image,
    file_to_data_url,
    files_to_data_urls,
    image_dimensions,
    is_data_url,
    optimal_quality,
)


def _image_bytes(width: int, height: int, *, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    color = (200, 40, 90, 128) if mode == "RGBA" else (200, 40, 90)
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def _noise_png_data_url(width: int, height: int) -> str:
    image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def _decode(data_url: str) -> Image.Image:
    payload = data_url.split(",", 1)[1]
    return Image.open(BytesIO(base64.b64decode(payload)))


def test_wide_image_is_downscaled_proportionally() -> None:
    data_url = file_to_data_url(_image_bytes(2400, 1600, fmt="JPEG"), content_type="image/jpeg", max_width=1200)

    assert data_url.startswith("data:image/jpeg;base64,")
    decoded = _decode(data_url)
    assert decoded.format == "JPEG"
    assert decoded.size == (1200, 800)


def test_aspect_ratio_is_kept_within_rounding() -> None:
    encoded = encode_image(_image_bytes(1000, 333), content_type="image/png", max_width=300)

    assert encoded.width == 300
    assert encoded.height == 100
    assert abs(encoded.width / encoded.height - 1000 / 333) < 0.05


def test_narrow_image_keeps_its_size() -> None:
    encoded = encode_image(_image_bytes(640, 480, fmt="JPEG"), content_type="image/jpeg", max_width=1200)

    assert (encoded.width, encoded.height) == (640, 480)
    assert _decode(encoded.data_url).size == (640, 480)


def test_png_source_stays_png() -> None:
    encoded = encode_image(_image_bytes(50, 50, mode="RGBA"), content_type="image/png")

    assert encoded.mime_type == "image/png"
    decoded = _decode(encoded.data_url)
    assert decoded.format == "PNG"
    assert decoded.mode == "RGBA"


def test_transparent_non_png_source_is_flattened_to_jpeg() -> None:
    encoded = encode_image(_image_bytes(40, 30, mode="RGBA"), content_type="image/webp")

    assert encoded.mime_type == "image/jpeg"
    assert _decode(encoded.data_url).mode == "RGB"
    assert encoded.size_bytes == data_url_size(encoded.data_url)


def test_non_image_content_type_is_rejected() -> None:
    with pytest.raises(UnsupportedImageError):
        file_to_data_url(_image_bytes(10, 10), content_type="application/pdf")


def test_undecodable_bytes_are_rejected() -> None:
    with pytest.raises(ImageEncodingError):
        file_to_data_url(b"definitely not an image", content_type="image/png")


def test_batch_encoding_preserves_order() -> None:
    results = files_to_data_urls(
        [
            (_image_bytes(300, 100), "image/png"),
            (_image_bytes(100, 300, fmt="JPEG"), "image/jpeg"),
        ],
        max_width=150,
    )

    assert [_decode(item).size for item in results] == [(150, 50), (100, 300)]


def test_batch_encoding_fails_on_first_bad_file() -> None:
    with pytest.raises(UnsupportedImageError):
        files_to_data_urls([(_image_bytes(10, 10), "image/png"), (b"text", "text/plain")])


def test_is_data_url() -> None:
    assert is_data_url("data:image/png;base64,AAAA")
    assert not is_data_url("https://cdn.example.test/a.png")
    assert not is_data_url("")
    assert not is_data_url(None)


@pytest.mark.parametrize(
    ("data_url", "expected"),
    [
        ("data:image/png;base64,AAAA", 3),
        ("data:image/png;base64,AAA=", 2),
        ("data:image/png;base64,AA==", 1),
        ("data:image/png;base64,", 0),
        ("not a data url", 0),
    ],
)
def test_data_url_size(data_url: str, expected: int) -> None:
    assert data_url_size(data_url) == expected


def test_compress_returns_under_budget_input_unchanged() -> None:
    data_url = file_to_data_url(_image_bytes(20, 20), content_type="image/png")

    once = compress_data_url_if_needed(data_url, max_size_kb=500)
    twice = compress_data_url_if_needed(once, max_size_kb=500)

    assert once == data_url
    assert twice == data_url


def test_compress_reencodes_oversized_input_as_jpeg() -> None:
    original = _noise_png_data_url(500, 500)
    assert data_url_size(original) > 400 * 1024

    result = compress_data_url_if_needed(original, max_size_kb=200)

    assert result.startswith("data:image/jpeg;base64,")
    assert data_url_size(result) < data_url_size(original)
    assert _decode(result).size == (500, 500)


def test_compress_stops_at_quality_floor() -> None:
    original = _noise_png_data_url(200, 200)

    result = compress_data_url_if_needed(original, max_size_kb=1, min_quality=0.5)

    assert result.startswith("data:image/jpeg;base64,")
    assert data_url_size(result) > 1024


def test_compress_rejects_oversized_non_image_payload() -> None:
    bogus = "data:text/plain;base64," + "A" * 4000

    with pytest.raises(ImageEncodingError):
        compress_data_url_if_needed(bogus, max_size_kb=1)


def test_calculate_dimensions_fits_bounding_box() -> None:
    assert calculate_dimensions(800, 600, 1920, 1920) == (800, 600)
    assert calculate_dimensions(4000, 2000, 1920, 1920) == (1920, 960)
    assert calculate_dimensions(1000, 4000, 1920, 1920) == (480, 1920)


def test_optimal_quality_tiers() -> None:
    assert optimal_quality(6 * 1024 * 1024) == 0.7
    assert optimal_quality(3 * 1024 * 1024) == 0.8
    assert optimal_quality(int(1.5 * 1024 * 1024)) == 0.85
    assert optimal_quality(200 * 1024) == 0.9


def test_max_height_bounds_tall_images() -> None:
    encoded = encode_image(_image_bytes(400, 1600), content_type="image/png", max_width=1200, max_height=800)

    assert (encoded.width, encoded.height) == (200, 800)


def test_image_dimensions_reads_header() -> None:
    assert image_dimensions(_image_bytes(123, 45)) == (123, 45)

    with pytest.raises(ImageEncodingError):
        image_dimensions(b"nope")
