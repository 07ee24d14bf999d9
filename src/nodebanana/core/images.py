"""Data URL helpers for images passed between nodes and services.

Images travel through the engine as base64 data URLs
(``data:image/png;base64,...``), the format the generation services accept
and return.  Pillow is used whenever pixel data is needed.
"""

from __future__ import annotations

import base64
import binascii
import io
import re

from PIL import Image, UnidentifiedImageError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


def split_data_url(data_url: str) -> tuple[str, str]:
    """Split a data URL into ``(mime_type, base64_payload)``.

    A bare base64 string (no ``data:`` header) is assumed to be PNG.
    """
    match = _DATA_URL_RE.match(data_url)
    if match is None:
        return "image/png", data_url
    return match.group("mime"), match.group("data")


def decode_data_url(data_url: str) -> Image.Image:
    """Decode a data URL into a Pillow image.

    Raises:
        ValueError: If the payload is not valid base64 or not an image.
    """
    _, payload = split_data_url(data_url)
    try:
        raw = base64.b64decode(payload, validate=False)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Invalid image data: {exc}") from exc
    return image


def encode_data_url(image: Image.Image, image_format: str = "PNG") -> str:
    """Encode a Pillow image as a base64 data URL."""
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/{image_format.lower()};base64,{encoded}"


def decode_bytes(data_url: str) -> bytes:
    """Return the raw bytes behind a data URL."""
    _, payload = split_data_url(data_url)
    try:
        return base64.b64decode(payload, validate=False)
    except binascii.Error as exc:
        raise ValueError(f"Invalid image data: {exc}") from exc


def describe_data_url(data_url: str) -> dict:
    """Summarise an image data URL for logging without embedding its payload."""
    match = re.match(r"^data:image/(\w+);base64,(.+)$", data_url, re.DOTALL)
    if match is None:
        return {"error": "Invalid image data URI"}
    size_bytes = len(match.group(2)) * 0.75
    return {
        "format": match.group(1),
        "sizeKB": round(size_bytes / 1024),
        "isDataURI": True,
    }
