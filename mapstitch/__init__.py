"""Stitch web-map tiles covering a bounding box into a single image."""

from .config import StitchConfig, load_stitch_config
from .services.stitcher import Stitcher

__all__ = ["Stitcher", "StitchConfig", "load_stitch_config"]

__version__ = "0.1.0"
