from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_TILE_SIZE = 256
DEFAULT_MAX_TILES = 625
DEFAULT_MIN_ZOOM = 3
DEFAULT_MAX_ZOOM = 22
DEFAULT_MAX_CONCURRENCY = 32
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_USER_AGENT = "mapstitch/0.1"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_WIDTH = 1500
DEFAULT_HEIGHT = 1000
DEFAULT_MAX_CONNECTIONS = 32

TILE_SIZE_ENV = "TILE_SIZE"
MAX_TILES_ENV = "MAPSTITCH_MAX_TILES"
MAX_ZOOM_ENV = "MAPSTITCH_MAX_ZOOM"
MAX_CONCURRENCY_ENV = "MAPSTITCH_MAX_CONCURRENCY"
REQUEST_TIMEOUT_ENV = "MAPSTITCH_REQUEST_TIMEOUT"
BACKGROUND_COLOR_ENV = "MAPSTITCH_BACKGROUND_COLOR"
USER_AGENT_ENV = "MAPSTITCH_USER_AGENT"
HOST_ENV = "HOST"
PORT_ENV = "PORT"
DEFAULT_WIDTH_ENV = "DEFAULT_WIDTH"
DEFAULT_HEIGHT_ENV = "DEFAULT_HEIGHT"
MAX_CONNECTIONS_ENV = "MAPSTITCH_MAX_CONNECTIONS"


@dataclass(frozen=True)
class StitchConfig:
    """Immutable settings shared by every request served by one stitcher."""

    tile_size: int = DEFAULT_TILE_SIZE
    max_tiles: int = DEFAULT_MAX_TILES
    min_zoom: int = DEFAULT_MIN_ZOOM
    max_zoom: int = DEFAULT_MAX_ZOOM
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    background_color: str | None = None
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    default_width: int = DEFAULT_WIDTH
    default_height: int = DEFAULT_HEIGHT
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    stitch: StitchConfig = field(default_factory=StitchConfig)


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        return default
    return max(minimum, value)


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw_value = os.getenv(name, "").strip()
    if not raw_value:
        return default
    try:
        value = float(raw_value)
    except ValueError:
        return default
    return max(minimum, value)


def _env_str(name: str, default: str | None) -> str | None:
    raw_value = os.getenv(name, "").strip()
    return raw_value or default


def load_stitch_config() -> StitchConfig:
    """Build a :class:`StitchConfig` from ``TILE_SIZE`` and ``MAPSTITCH_*`` variables."""

    return StitchConfig(
        tile_size=_env_int(TILE_SIZE_ENV, DEFAULT_TILE_SIZE, minimum=1),
        max_tiles=_env_int(MAX_TILES_ENV, DEFAULT_MAX_TILES, minimum=1),
        max_zoom=_env_int(MAX_ZOOM_ENV, DEFAULT_MAX_ZOOM, minimum=DEFAULT_MIN_ZOOM),
        max_concurrency=_env_int(MAX_CONCURRENCY_ENV, DEFAULT_MAX_CONCURRENCY, minimum=1),
        request_timeout=_env_float(REQUEST_TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT),
        background_color=_env_str(BACKGROUND_COLOR_ENV, None),
        user_agent=_env_str(USER_AGENT_ENV, DEFAULT_USER_AGENT) or DEFAULT_USER_AGENT,
    )


def load_server_config() -> ServerConfig:
    return ServerConfig(
        host=_env_str(HOST_ENV, DEFAULT_HOST) or DEFAULT_HOST,
        port=_env_int(PORT_ENV, DEFAULT_PORT, minimum=1),
        default_width=_env_int(DEFAULT_WIDTH_ENV, DEFAULT_WIDTH, minimum=1),
        default_height=_env_int(DEFAULT_HEIGHT_ENV, DEFAULT_HEIGHT, minimum=1),
        max_connections=_env_int(MAX_CONNECTIONS_ENV, DEFAULT_MAX_CONNECTIONS, minimum=1),
        stitch=load_stitch_config(),
    )
