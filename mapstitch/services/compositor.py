from __future__ import annotations

import logging
import time
from typing import Sequence

from PIL import Image

from ..config import DEFAULT_TILE_SIZE
from . import raster
from .fetcher import FetchSlot
from .grid import TileGrid

logger = logging.getLogger(__name__)


def composite(
    grid: TileGrid,
    slots: Sequence[FetchSlot],
    *,
    tile_size: int = DEFAULT_TILE_SIZE,
    background_color: str | None = None,
) -> Image.Image:
    """Draw fetched tiles into a surface of ``cols * tile_size`` by ``rows * tile_size``.

    Absent slots keep the background. A tile that fails to draw is replaced by
    a transparent cell instead of failing the whole composite.
    """

    if len(slots) != len(grid):
        raise ValueError(f"Expected {len(grid)} slots for the grid, got {len(slots)}")

    started = time.perf_counter()
    surface = raster.allocate(grid.cols * tile_size, grid.rows * tile_size, background_color)

    drawn = 0
    for slot in slots:
        if slot.image is None:
            continue

        column, row = grid.position(slot.index)
        origin = (column * tile_size, row * tile_size)
        try:
            tile = slot.image.convert("RGBA")
            if tile.size != (tile_size, tile_size):
                tile = tile.resize((tile_size, tile_size), Image.LANCZOS)
            surface.alpha_composite(tile, dest=origin)
        except Exception as exc:  # corrupt or truncated tile data
            source_url = slot.image.info.get("source_url", slot.url)
            logger.warning("Unable to draw tile %s: %s", source_url, exc)
            surface.paste(
                raster.TRANSPARENT,
                (origin[0], origin[1], origin[0] + tile_size, origin[1] + tile_size),
            )
            continue
        drawn += 1

    logger.debug(
        "Stitched %d/%d tiles in %.1f ms",
        drawn,
        len(slots),
        (time.perf_counter() - started) * 1000,
    )
    return surface
