from __future__ import annotations


class StitchError(Exception):
    """Base class for failures raised while building a stitched map image."""


class ConfigError(StitchError):
    """Raised for an invalid zoom, tile size or provider."""


class ValidationError(StitchError):
    """Raised by a tile validator to reject a single tile response."""


class BatchAbortError(ValidationError):
    """Raised by a tile validator to abort the whole fetch batch."""


class QuotaExceededError(StitchError):
    """Raised when a tile grid needs more tiles than the configured maximum."""

    def __init__(self, tile_count: int, max_tiles: int) -> None:
        super().__init__(
            f"Requested view requires {tile_count} tiles which exceeds the limit of {max_tiles}."
        )
        self.tile_count = tile_count
        self.max_tiles = max_tiles


class DecodeError(StitchError):
    """Raised when a tile body cannot be decoded as an image."""


class EncodeError(StitchError):
    """Raised when the final surface cannot be serialized."""


class InternalInvariantError(StitchError):
    """Raised when an antimeridian split resolves to inconsistent halves."""
