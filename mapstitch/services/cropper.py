from __future__ import annotations

from PIL import Image, ImageOps

from . import raster
from .projection import WebMercator
from .views import View, pixel_window


def crop(
    surface: Image.Image,
    view: View,
    width: int,
    height: int,
    projection: WebMercator,
) -> Image.Image:
    """Crop a stitched surface to ``view`` and scale it to ``width`` x ``height``.

    The surface origin is the top-left corner of the first tile, so the
    extent's own corner sits at its pixel position modulo the tile size.
    """

    window = pixel_window(projection, view)
    start_x = window.x % projection.tile_size
    start_y = window.y % projection.tile_size
    box = (start_x, start_y, start_x + window.width, start_y + window.height)
    return raster.draw_scaled(surface, box, (width, height))


def crop_to_center(surface: Image.Image, width: int, height: int) -> Image.Image:
    """Cut a ``width`` x ``height`` window out of the middle of ``surface`` without scaling."""

    x_offset = (surface.width - width) // 2
    y_offset = (surface.height - height) // 2
    return surface.crop((x_offset, y_offset, x_offset + width, y_offset + height))


def resize(surface: Image.Image, width: int, height: int) -> Image.Image:
    """Scale ``surface`` to cover ``width`` x ``height`` and trim the overflow evenly."""

    return ImageOps.fit(surface, (width, height), method=Image.LANCZOS, centering=(0.5, 0.5))
