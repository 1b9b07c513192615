"""Tile stitching services exposed by the ``mapstitch.services`` package."""

from .fetcher import StatusCodeValidator, TileFetcher, TileValidator, build_urls
from .stitcher import Stitcher
from .views import View, ViewResolver

__all__ = [
    "Stitcher",
    "StatusCodeValidator",
    "TileFetcher",
    "TileValidator",
    "View",
    "ViewResolver",
    "build_urls",
]
