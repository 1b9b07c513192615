from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Tuple

from ..config import DEFAULT_MAX_ZOOM, DEFAULT_MIN_ZOOM
from ..errors import ConfigError, InternalInvariantError
from .projection import Extent, WebMercator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class View:
    """A resolved zoom level plus the extent(s) to render at that zoom.

    Two extents only occur for a box crossing the antimeridian: the first one
    covers ``[west, 180]`` and the second one ``[-180, east]``.
    """

    extents: Tuple[Extent, ...]
    zoom: int
    widths: Tuple[float, ...] = field(default=())

    @property
    def crosses_antimeridian(self) -> bool:
        return len(self.extents) == 2


class Dimensions(NamedTuple):
    width: int
    height: int


class PixelWindow(NamedTuple):
    """Global pixel origin and size of a view's extent(s)."""

    x: int
    y: int
    width: int
    height: int


def split_extent(extent: Extent) -> Tuple[Extent, Extent]:
    """Split an antimeridian-crossing extent into its eastern and western halves."""

    west, south, east, north = extent
    return (west, south, 180.0, north), (-180.0, south, east, north)


def pixel_window(projection: WebMercator, view: View) -> PixelWindow:
    """Return the pixel rectangle covered by ``view`` at its zoom.

    For an antimeridian view the width runs from the first extent's western
    edge to the 180° seam and continues from -180° to the second extent's
    eastern edge.
    """

    if not view.extents:
        raise ConfigError("View has no extents.")

    first = view.extents[0]
    last = view.extents[-1]
    nw_x, nw_y = projection.to_pixel(first[0], first[3], view.zoom)
    se_x, se_y = projection.to_pixel(last[2], last[1], view.zoom)

    if view.crosses_antimeridian:
        seam_x, _ = projection.to_pixel(180.0, first[3], view.zoom)
        width = (seam_x - nw_x) + se_x
    else:
        width = se_x - nw_x

    return PixelWindow(x=nw_x, y=nw_y, width=width, height=se_y - nw_y)


class ViewResolver:
    """Pick the zoom level needed to render an extent at a target pixel size."""

    def __init__(
        self,
        projection: WebMercator,
        *,
        min_zoom: int = DEFAULT_MIN_ZOOM,
        max_zoom: int = DEFAULT_MAX_ZOOM,
    ) -> None:
        if min_zoom < 0 or max_zoom < min_zoom:
            raise ConfigError(f"Invalid zoom bounds: min {min_zoom}, max {max_zoom}.")
        self.projection = projection
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom

    def resolve(self, extent: Extent, width: float, height: float) -> View:
        """Return the smallest-zoom view whose pixel box covers ``width`` x ``height``.

        The returned view keeps the original extent rather than snapping it to
        tile boundaries. Extents with ``west > east`` are split at the
        antimeridian and each half is resolved against its share of the width.
        """

        west, south, east, north = extent
        if south > north:
            raise ConfigError(f"Extent south {south} lies north of {north}.")

        if west > east:
            return self._resolve_split(extent, width, height)

        zoom = self.min_zoom
        while zoom < self.max_zoom:
            span_width, span_height = self._pixel_span(extent, zoom)
            # literal search condition: continue while either axis is too small
            if not (span_width < width or span_height < height):
                break
            zoom += 1

        return View(extents=(extent,), zoom=zoom, widths=(float(width),))

    def dimensions(self, view: View) -> Dimensions:
        """Return the natural pixel size of ``view`` at its resolved zoom."""

        window = pixel_window(self.projection, view)
        return Dimensions(width=max(1, window.width), height=max(1, window.height))

    def _resolve_split(self, extent: Extent, width: float, height: float) -> View:
        left, right = split_extent(extent)
        left_span = left[2] - left[0]
        right_span = right[2] - right[0]
        total_span = left_span + right_span
        if total_span <= 0:
            raise ConfigError(f"Extent {extent} has no longitude span.")

        left_width = left_span / total_span * width
        right_width = right_span / total_span * width

        left_view = self.resolve(left, left_width, height)
        right_view = self.resolve(right, right_width, height)

        if left_view.zoom != right_view.zoom:
            raise InternalInvariantError(
                "Antimeridian halves resolved to different zoom levels "
                f"({left_view.zoom} and {right_view.zoom}) for extent {extent}."
            )

        logger.debug(
            "Split extent %s at the antimeridian: widths %.1f/%.1f at zoom %d",
            extent,
            left_width,
            right_width,
            left_view.zoom,
        )
        return View(
            extents=(left, right),
            zoom=left_view.zoom,
            widths=(left_width, right_width),
        )

    def _pixel_span(self, extent: Extent, zoom: int) -> Tuple[int, int]:
        west, south, east, north = extent
        nw_x, nw_y = self.projection.to_pixel(west, north, zoom)
        se_x, se_y = self.projection.to_pixel(east, south, zoom)
        return se_x - nw_x, se_y - nw_y
