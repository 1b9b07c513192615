from __future__ import annotations

import logging
import time
from typing import Dict, List

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from .config import ServerConfig, load_server_config
from .errors import (
    BatchAbortError,
    ConfigError,
    EncodeError,
    QuotaExceededError,
    StitchError,
)
from .providers import ProviderMetadata, load_providers
from .services import raster
from .services.projection import Extent
from .services.stitcher import Stitcher

logger = logging.getLogger(__name__)


class ProviderOption(BaseModel):
    key: str
    label: str
    template: str


def parse_extent(raw: str | None) -> Extent:
    """Parse a ``south:west:north:east`` query value into ``(west, south, east, north)``."""

    if not raw:
        raise HTTPException(status_code=400, detail="'extent' is required")

    parts = raw.split(":")
    if len(parts) != 4:
        raise HTTPException(
            status_code=400, detail="'extent' must be four numbers as south:west:north:east"
        )
    try:
        south, west, north, east = (float(part) for part in parts)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid extent: {raw}") from exc

    if south > north:
        raise HTTPException(status_code=400, detail="'extent' south must not exceed north")
    return (west, south, east, north)


def _lookup_template(providers: Dict[str, ProviderMetadata], key: str | None) -> str:
    entry = providers.get(key or "")
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No such provider: {key}")
    return entry["template"]


def create_app(config: ServerConfig | None = None) -> FastAPI:
    config = config or load_server_config()
    providers = load_providers()
    stitcher = Stitcher(config.stitch)

    app = FastAPI(title="mapstitch", version="0.1.0")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"], allow_headers=["*"])
    app.state.config = config
    app.state.providers = providers
    app.state.stitcher = stitcher
    app.state.http_client = None

    @app.on_event("startup")
    async def open_http_client() -> None:
        app.state.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.stitch.request_timeout),
            limits=httpx.Limits(max_connections=config.max_connections),
            headers={"User-Agent": config.stitch.user_agent},
        )

    @app.on_event("shutdown")
    async def close_http_client() -> None:
        client = app.state.http_client
        app.state.http_client = None
        if client is not None:
            await client.aclose()

    @app.middleware("http")
    async def response_time(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Response-Time"] = f"{(time.perf_counter() - started) * 1000:.3f}ms"
        return response

    async def render_response(
        template: str,
        extent: Extent,
        *,
        width: int | None,
        height: int | None,
        zoom: int | None,
        fmt: str,
    ) -> Response:
        try:
            media_type = raster.media_type(fmt)
            image = await stitcher.render(
                template,
                extent,
                width=width,
                height=height,
                zoom=zoom,
                client=app.state.http_client,
            )
            content = raster.encode(image, fmt)
        except QuotaExceededError as exc:
            raise HTTPException(status_code=413, detail=str(exc)) from exc
        except ConfigError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except BatchAbortError as exc:
            logger.warning("Tile batch aborted: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except EncodeError as exc:
            logger.error("Unable to encode stitched image: %s", exc)
            raise HTTPException(status_code=500, detail="Unable to encode image") from exc
        except StitchError as exc:
            logger.exception("Stitching failed for extent %s", extent)
            raise HTTPException(status_code=500, detail="Unable to stitch image") from exc

        return Response(content=content, media_type=media_type)

    @app.get("/")
    async def render_at_zoom(
        extent: str | None = Query(None, description="south:west:north:east"),
        zoom: int | None = Query(None, ge=0),
        p: str | None = Query(None, description="Provider key"),
        format: str = Query("png"),
    ) -> Response:
        template = _lookup_template(providers, p)
        parsed = parse_extent(extent)
        if zoom is None:
            raise HTTPException(status_code=400, detail="'zoom' is required")
        return await render_response(template, parsed, width=None, height=None, zoom=zoom, fmt=format)

    @app.get("/mapimg")
    async def render_at_size(
        extent: str | None = Query(None, description="south:west:north:east"),
        w: int | None = Query(None, gt=0),
        h: int | None = Query(None, gt=0),
        zoom: int | None = Query(None, ge=0),
        p: str | None = Query(None, description="Provider key"),
        format: str = Query("png"),
    ) -> Response:
        template = _lookup_template(providers, p)
        parsed = parse_extent(extent)
        return await render_response(
            template,
            parsed,
            width=w or config.default_width,
            height=h or config.default_height,
            zoom=zoom,
            fmt=format,
        )

    @app.get("/providers", response_model=List[ProviderOption])
    def list_providers() -> List[ProviderOption]:
        return [
            ProviderOption(key=key, label=entry.get("label", key), template=entry["template"])
            for key, entry in providers.items()
        ]

    return app


def main() -> None:
    import uvicorn

    config = load_server_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
