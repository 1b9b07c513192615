from __future__ import annotations

import logging

import httpx
from PIL import Image

from ..config import StitchConfig
from ..errors import ConfigError
from . import cropper
from .compositor import composite
from .fetcher import TileFetcher, TileValidator, build_urls
from .grid import TileGrid, TileGridBuilder
from .projection import Extent, WebMercator
from .views import Dimensions, View, ViewResolver, split_extent

logger = logging.getLogger(__name__)


class Stitcher:
    """Render map images from a tile provider template.

    A stitcher only holds immutable configuration and a validator, so one
    instance can serve many concurrent requests.
    """

    def __init__(
        self,
        config: StitchConfig | None = None,
        *,
        validator: TileValidator | None = None,
    ) -> None:
        self.config = config or StitchConfig()
        self.projection = WebMercator(self.config.tile_size)
        self.resolver = ViewResolver(
            self.projection,
            min_zoom=self.config.min_zoom,
            max_zoom=self.config.max_zoom,
        )
        self.grid_builder = TileGridBuilder(self.projection, max_tiles=self.config.max_tiles)
        self.fetcher = TileFetcher(
            validator,
            max_concurrency=self.config.max_concurrency,
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
        )

    def resolve(self, extent: Extent, width: float, height: float) -> View:
        return self.resolver.resolve(extent, width, height)

    def view_for_zoom(self, extent: Extent, zoom: int) -> View:
        """Build a view for an explicit zoom, splitting at the antimeridian if needed."""

        if zoom < 0 or zoom > self.config.max_zoom:
            raise ConfigError(f"Zoom must be between 0 and {self.config.max_zoom}, got {zoom}.")
        if extent[0] > extent[2]:
            return View(extents=split_extent(extent), zoom=zoom)
        return View(extents=(extent,), zoom=zoom)

    def dimensions(self, view: View) -> Dimensions:
        return self.resolver.dimensions(view)

    def build_grid(self, view: View) -> TileGrid:
        return self.grid_builder.build_grid(view)

    async def stitch(
        self,
        template: str,
        view: View,
        client: httpx.AsyncClient | None = None,
        *,
        grid: TileGrid | None = None,
    ) -> Image.Image:
        """Fetch every tile of ``view`` and return the uncropped composite surface.

        ``grid`` is built from ``view`` unless the caller already holds it.
        """

        if grid is None:
            grid = self.build_grid(view)
        tiles = grid.tiles()
        urls = build_urls(template, tiles)
        requests = [(index, tile, url) for index, (tile, url) in enumerate(zip(tiles, urls))]

        logger.info("Fetching %d tiles (%dx%d) at zoom %d", len(tiles), grid.cols, grid.rows, view.zoom)
        slots = await self.fetcher.fetch_all(requests, client=client)

        return composite(
            grid,
            slots,
            tile_size=self.config.tile_size,
            background_color=self.config.background_color,
        )

    def crop(self, surface: Image.Image, view: View, width: int, height: int) -> Image.Image:
        return cropper.crop(surface, view, width, height, self.projection)

    async def render(
        self,
        template: str,
        extent: Extent,
        *,
        width: int | None = None,
        height: int | None = None,
        zoom: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> Image.Image:
        """Produce the final image for ``extent``.

        With ``zoom`` the image has the view's natural size unless ``width`` and
        ``height`` are both given. Without ``zoom`` the zoom is resolved from
        the requested size.
        """

        if zoom is not None:
            view = self.view_for_zoom(extent, zoom)
        elif width is not None and height is not None:
            view = self.resolve(extent, width, height)
        else:
            raise ConfigError("Either a zoom level or a target width and height is required.")

        if width is None or height is None:
            width, height = self.dimensions(view)

        surface = await self.stitch(template, view, client=client)
        return self.crop(surface, view, width, height)
