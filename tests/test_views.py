import pytest

from mapstitch.errors import ConfigError, InternalInvariantError
from mapstitch.services.projection import WebMercator
from mapstitch.services.views import View, ViewResolver, pixel_window

SAN_FRANCISCO = (-122.52, 37.70, -122.35, 37.83)


def _span(merc, extent, zoom):
    west, south, east, north = extent
    nw = merc.to_pixel(west, north, zoom)
    se = merc.to_pixel(east, south, zoom)
    return se[0] - nw[0], se[1] - nw[1]


def test_resolve_picks_smallest_sufficient_zoom():
    merc = WebMercator()
    resolver = ViewResolver(merc)

    view = resolver.resolve(SAN_FRANCISCO, 800, 600)

    width, height = _span(merc, SAN_FRANCISCO, view.zoom)
    assert width >= 800 and height >= 600

    assert view.zoom > resolver.min_zoom
    smaller_width, smaller_height = _span(merc, SAN_FRANCISCO, view.zoom - 1)
    assert smaller_width < 800 or smaller_height < 600


def test_resolve_keeps_original_extent():
    resolver = ViewResolver(WebMercator())

    view = resolver.resolve(SAN_FRANCISCO, 300, 200)

    assert view.extents == (SAN_FRANCISCO,)
    assert view.widths == (300.0,)
    assert not view.crosses_antimeridian


def test_resolve_height_can_drive_zoom():
    merc = WebMercator()
    resolver = ViewResolver(merc)
    tall = (10.0, 0.0, 10.01, 5.0)

    view = resolver.resolve(tall, 1, 1000)

    width, height = _span(merc, tall, view.zoom)
    assert height >= 1000
    assert _span(merc, tall, view.zoom - 1)[1] < 1000


def test_resolve_splits_antimeridian_extent():
    resolver = ViewResolver(WebMercator())

    view = resolver.resolve((170.0, -10.0, -170.0, 10.0), 800, 600)

    assert view.extents == ((170.0, -10.0, 180.0, 10.0), (-180.0, -10.0, -170.0, 10.0))
    assert view.crosses_antimeridian
    assert sum(view.widths) == pytest.approx(800)
    assert view.widths[0] == pytest.approx(400)

    left = resolver.resolve(view.extents[0], view.widths[0], 600)
    right = resolver.resolve(view.extents[1], view.widths[1], 600)
    assert left.zoom == right.zoom == view.zoom


def test_resolve_allocates_width_by_longitude_span():
    resolver = ViewResolver(WebMercator())

    view = resolver.resolve((175.0, -10.0, -165.0, 10.0), 800, 600)

    assert view.widths[0] == pytest.approx(200)
    assert view.widths[1] == pytest.approx(600)


def test_resolve_mismatched_halves_raise():
    class LopsidedResolver(ViewResolver):
        def _pixel_span(self, extent, zoom):
            if extent[0] == -180.0:
                return 0, 0
            return super()._pixel_span(extent, zoom)

    resolver = LopsidedResolver(WebMercator())

    with pytest.raises(InternalInvariantError):
        resolver.resolve((170.0, -10.0, -170.0, 10.0), 800, 600)


def test_resolve_degenerate_extent_stops_at_max_zoom():
    resolver = ViewResolver(WebMercator(), max_zoom=18)

    view = resolver.resolve((1.0, 1.0, 1.0, 1.0), 100, 100)

    assert view.zoom == 18


def test_resolve_rejects_inverted_latitudes():
    resolver = ViewResolver(WebMercator())

    with pytest.raises(ConfigError):
        resolver.resolve((0.0, 10.0, 1.0, 5.0), 100, 100)


def test_resolve_rejects_zero_width_antimeridian_extent():
    resolver = ViewResolver(WebMercator())

    with pytest.raises(ConfigError):
        resolver.resolve((180.0, -10.0, -180.0, 10.0), 800, 600)


def test_invalid_zoom_bounds_rejected():
    with pytest.raises(ConfigError):
        ViewResolver(WebMercator(), min_zoom=5, max_zoom=4)


def test_dimensions_matches_pixel_span():
    merc = WebMercator()
    resolver = ViewResolver(merc)
    view = View(extents=(SAN_FRANCISCO,), zoom=12)

    dims = resolver.dimensions(view)

    assert (dims.width, dims.height) == _span(merc, SAN_FRANCISCO, 12)


def test_pixel_window_spans_antimeridian_seam():
    merc = WebMercator()
    view = View(extents=((170.0, -10.0, 180.0, 10.0), (-180.0, -10.0, -170.0, 10.0)), zoom=3)

    window = pixel_window(merc, view)

    west_x = merc.to_pixel(170.0, 10.0, 3)[0]
    east_x = merc.to_pixel(-170.0, -10.0, 3)[0]
    assert window.x == west_x
    assert window.width == (merc.world_size(3) - west_x) + east_x
    assert window.height == merc.to_pixel(0.0, -10.0, 3)[1] - merc.to_pixel(0.0, 10.0, 3)[1]
