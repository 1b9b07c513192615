from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from ..config import DEFAULT_TILE_SIZE
from ..errors import ConfigError

MERCATOR_LATITUDE_LIMIT = 85.0511287798

# (west, south, east, north) in degrees
Extent = Tuple[float, float, float, float]


@dataclass(frozen=True)
class TileCoordinate:
    """Address of a single tile in the XYZ web-map scheme."""

    zoom: int
    x: int
    y: int


@dataclass(frozen=True)
class TileRange:
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    @property
    def cols(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def rows(self) -> int:
        return self.max_y - self.min_y + 1


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(min(value, maximum), minimum)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class WebMercator:
    """Spherical mercator math for square tiles of ``tile_size`` pixels."""

    def __init__(self, tile_size: int = DEFAULT_TILE_SIZE) -> None:
        if tile_size <= 0:
            raise ConfigError(f"Tile size must be positive, got {tile_size}.")
        self.tile_size = tile_size

    def world_size(self, zoom: int) -> int:
        """Return the pixel width (and height) of the whole world at ``zoom``."""

        _validate_zoom(zoom)
        return self.tile_size * (2 ** zoom)

    def to_pixel(self, lng: float, lat: float, zoom: int) -> Tuple[int, int]:
        """Project a longitude/latitude pair to global pixel coordinates.

        Latitude is clamped to the mercator-valid range first, so the poles
        map onto the top and bottom edges of the world rather than infinity.
        """

        size = self.world_size(zoom)
        half = size / 2.0
        pixels_per_degree = size / 360.0
        pixels_per_radian = size / (2 * math.pi)

        clamped = _clamp(lat, -MERCATOR_LATITUDE_LIMIT, MERCATOR_LATITUDE_LIMIT)
        sin_lat = math.sin(math.radians(clamped))

        x = half + lng * pixels_per_degree
        y = half - 0.5 * math.log((1 + sin_lat) / (1 - sin_lat)) * pixels_per_radian

        return (
            int(_clamp(_round_half_up(x), 0, size)),
            int(_clamp(_round_half_up(y), 0, size)),
        )

    def tile_range(self, extent: Extent, zoom: int) -> TileRange:
        """Return the inclusive tile indices covering ``extent`` at ``zoom``."""

        west, south, east, north = extent
        nw_x, nw_y = self.to_pixel(west, north, zoom)
        se_x, se_y = self.to_pixel(east, south, zoom)

        last = 2 ** zoom - 1
        min_x = int(_clamp(nw_x // self.tile_size, 0, last))
        min_y = int(_clamp(nw_y // self.tile_size, 0, last))
        # an edge exactly on a tile boundary belongs to the previous tile
        max_x = int(_clamp((se_x - 1) // self.tile_size, min_x, last))
        max_y = int(_clamp((se_y - 1) // self.tile_size, min_y, last))

        return TileRange(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y)


def _validate_zoom(zoom: int) -> None:
    if zoom < 0:
        raise ConfigError(f"Zoom level must not be negative, got {zoom}.")
