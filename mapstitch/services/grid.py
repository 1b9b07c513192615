from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

from ..config import DEFAULT_MAX_TILES
from ..errors import InternalInvariantError, QuotaExceededError
from .projection import TileCoordinate, TileRange, WebMercator
from .views import View

logger = logging.getLogger(__name__)

TileColumn = Tuple[TileCoordinate, ...]


@dataclass(frozen=True)
class TileGrid:
    """Tiles covering a view, stored as columns of increasing ``y``.

    Enumeration is column-major: every tile of the first column, then every
    tile of the second column, and so on. Slot indices and cell positions are
    both derived from this order.
    """

    columns: Tuple[TileColumn, ...]

    @property
    def cols(self) -> int:
        return len(self.columns)

    @property
    def rows(self) -> int:
        return len(self.columns[0]) if self.columns else 0

    def __len__(self) -> int:
        return self.cols * self.rows

    def tiles(self) -> List[TileCoordinate]:
        return [tile for column in self.columns for tile in column]

    def position(self, index: int) -> Tuple[int, int]:
        """Return the ``(column, row)`` cell for a slot index."""

        if not 0 <= index < len(self):
            raise IndexError(f"Slot index {index} outside grid of {len(self)} tiles")
        return divmod(index, self.rows)


class TileGridBuilder:
    def __init__(self, projection: WebMercator, *, max_tiles: int = DEFAULT_MAX_TILES) -> None:
        self.projection = projection
        self.max_tiles = max_tiles

    def tile_ranges(self, view: View) -> List[TileRange]:
        """Return the tile range of every extent of ``view`` after checking the quota.

        Only index arithmetic happens here, so an oversized view is rejected
        without enumerating any tiles.
        """

        ranges = [self.projection.tile_range(extent, view.zoom) for extent in view.extents]

        row_counts = {tile_range.rows for tile_range in ranges}
        if len(row_counts) > 1:
            raise InternalInvariantError(
                f"Extents of view at zoom {view.zoom} cover different row counts: {sorted(row_counts)}"
            )

        cols = sum(tile_range.cols for tile_range in ranges)
        rows = ranges[0].rows if ranges else 0
        tile_count = rows * cols
        if tile_count > self.max_tiles:
            raise QuotaExceededError(tile_count, self.max_tiles)
        return ranges

    def build_grid(self, view: View) -> TileGrid:
        """Enumerate the tiles covering every extent of ``view``.

        Columns of the second extent of an antimeridian view follow the
        columns of the first one. Raises :class:`QuotaExceededError` when the
        grid is larger than ``max_tiles``.
        """

        ranges = self.tile_ranges(view)
        columns: List[TileColumn] = []
        for tile_range in ranges:
            for x in range(tile_range.min_x, tile_range.max_x + 1):
                columns.append(
                    tuple(
                        TileCoordinate(zoom=view.zoom, x=x, y=y)
                        for y in range(tile_range.min_y, tile_range.max_y + 1)
                    )
                )

        grid = TileGrid(columns=tuple(columns))

        logger.debug("Built %dx%d tile grid at zoom %d", grid.cols, grid.rows, view.zoom)
        return grid
