import asyncio

import pytest

from mapstitch.config import StitchConfig
from mapstitch.errors import ConfigError, QuotaExceededError
from mapstitch.services.stitcher import Stitcher

from .conftest import tile_bytes

TEMPLATE = "http://tiles.test/{z}/{x}/{y}.png"
SAN_FRANCISCO = (-122.52, 37.70, -122.35, 37.83)


def test_render_resolves_size_and_fetches_grid(tile_server):
    stitcher = Stitcher()

    image = asyncio.run(stitcher.render(TEMPLATE, SAN_FRANCISCO, width=320, height=240))

    assert image.size == (320, 240)
    view = stitcher.resolve(SAN_FRANCISCO, 320, 240)
    grid = stitcher.build_grid(view)
    assert len(tile_server.calls) == len(grid)
    assert tile_server.calls[0] == f"http://tiles.test/{view.zoom}/{grid.tiles()[0].x}/{grid.tiles()[0].y}.png"
    assert image.getpixel((160, 120)) == (120, 200, 150, 255)


def test_render_at_zoom_uses_natural_dimensions(tile_server):
    stitcher = Stitcher()

    image = asyncio.run(stitcher.render(TEMPLATE, SAN_FRANCISCO, zoom=11))

    view = stitcher.view_for_zoom(SAN_FRANCISCO, 11)
    assert image.size == tuple(stitcher.dimensions(view))


def test_render_survives_missing_tile(tile_server):
    stitcher = Stitcher(StitchConfig(background_color="black"))
    view = stitcher.view_for_zoom((-180.0, -85.0, 180.0, 85.0), 1)
    first_url = "http://tiles.test/1/0/0.png"
    tile_server.routes[first_url] = (500, b"")

    surface = asyncio.run(stitcher.stitch(TEMPLATE, view))

    assert surface.size == (512, 512)
    assert surface.getpixel((100, 100)) == (0, 0, 0, 255)
    assert surface.getpixel((400, 400)) == (120, 200, 150, 255)


def test_stitch_uses_prebuilt_grid(tile_server, monkeypatch):
    stitcher = Stitcher()
    view = stitcher.view_for_zoom((-180.0, -85.0, 180.0, 85.0), 1)
    grid = stitcher.build_grid(view)

    def fail_build_grid(view):
        raise AssertionError("grid rebuilt")

    monkeypatch.setattr(stitcher.grid_builder, "build_grid", fail_build_grid)

    surface = asyncio.run(stitcher.stitch(TEMPLATE, view, grid=grid))

    assert surface.size == (512, 512)
    assert sorted(tile_server.calls) == sorted(
        f"http://tiles.test/1/{tile.x}/{tile.y}.png" for tile in grid.tiles()
    )


def test_stitch_over_quota_makes_no_requests(tile_server):
    stitcher = Stitcher(StitchConfig(max_tiles=4))
    view = stitcher.view_for_zoom((-180.0, -85.0, 180.0, 85.0), 3)

    with pytest.raises(QuotaExceededError):
        asyncio.run(stitcher.stitch(TEMPLATE, view))

    assert tile_server.calls == []
    assert tile_server.clients_opened == 0


def test_render_across_antimeridian(tile_server):
    blue = tile_bytes((0, 0, 255))
    for y in range(30, 34):
        tile_server.routes[f"http://tiles.test/6/1/{y}.png"] = (200, blue)
    stitcher = Stitcher()

    image = asyncio.run(stitcher.render(TEMPLATE, (170.0, -10.0, -170.0, 10.0), width=800, height=600))

    assert image.size == (800, 600)
    called_columns = {url.split("/")[4] for url in tile_server.calls}
    assert "0" in called_columns and "63" in called_columns
    assert image.getpixel((790, 300)) == (0, 0, 255, 255)


def test_view_for_zoom_splits_crossing_extent():
    stitcher = Stitcher()

    view = stitcher.view_for_zoom((170.0, -10.0, -170.0, 10.0), 4)

    assert view.crosses_antimeridian
    assert view.zoom == 4


def test_render_requires_zoom_or_size():
    stitcher = Stitcher()

    with pytest.raises(ConfigError):
        asyncio.run(stitcher.render(TEMPLATE, SAN_FRANCISCO, width=100))
    with pytest.raises(ConfigError):
        stitcher.view_for_zoom(SAN_FRANCISCO, -1)
