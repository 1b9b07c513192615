from __future__ import annotations

import io
import logging
import time
from typing import Tuple

from PIL import Image

from ..errors import ConfigError, EncodeError

logger = logging.getLogger(__name__)

SURFACE_MODE = "RGBA"
TRANSPARENT = (0, 0, 0, 0)
JPEG_QUALITY = 90

_FORMATS = {
    "png": ("PNG", "image/png"),
    "jpg": ("JPEG", "image/jpeg"),
    "jpeg": ("JPEG", "image/jpeg"),
}


def allocate(width: int, height: int, color: str | None = None) -> Image.Image:
    """Create a blank surface, transparent unless ``color`` is given."""

    try:
        return Image.new(SURFACE_MODE, (max(0, width), max(0, height)), color or TRANSPARENT)
    except ValueError as exc:
        raise ConfigError(f"Invalid background color {color!r}: {exc}") from exc


def draw_scaled(
    source: Image.Image,
    box: Tuple[int, int, int, int],
    size: Tuple[int, int],
) -> Image.Image:
    """Scale the ``box`` region of ``source`` into a new surface of ``size``."""

    width, height = size
    left, top, right, bottom = box
    left = max(0, min(left, source.width))
    top = max(0, min(top, source.height))
    right = max(left, min(right, source.width))
    bottom = max(top, min(bottom, source.height))

    if right <= left or bottom <= top or width <= 0 or height <= 0:
        return allocate(width, height)

    return source.resize((width, height), Image.LANCZOS, box=(left, top, right, bottom))


def media_type(fmt: str) -> str:
    return _lookup(fmt)[1]


def encode(image: Image.Image, fmt: str = "png", *, quality: int = JPEG_QUALITY) -> bytes:
    """Serialize ``image`` as PNG or JPEG bytes."""

    pil_format, _ = _lookup(fmt)
    started = time.perf_counter()
    buffer = io.BytesIO()
    try:
        if pil_format == "JPEG":
            image.convert("RGB").save(buffer, format=pil_format, quality=quality)
        else:
            image.save(buffer, format=pil_format)
    except (OSError, ValueError, SystemError) as exc:
        raise EncodeError(f"unable to encode {image.width}x{image.height} image as {fmt}: {exc}") from exc
    logger.debug("Encoded %s in %.1f ms", fmt, (time.perf_counter() - started) * 1000)
    return buffer.getvalue()


def _lookup(fmt: str) -> Tuple[str, str]:
    try:
        return _FORMATS[fmt.lower().lstrip(".")]
    except KeyError as exc:
        raise ConfigError(f"Unsupported output format: {fmt}") from exc
