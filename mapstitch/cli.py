"""Command-line entry point for mapstitch."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

import click

from .config import DEFAULT_HOST, DEFAULT_PORT, load_stitch_config
from .errors import StitchError
from .providers import resolve_template
from .services import raster
from .services.projection import Extent
from .services.stitcher import Stitcher

logger = logging.getLogger(__name__)


def normalize_extent(values: Sequence[str]) -> Extent:
    """Parse four coordinates given in any min/max order into ``(west, south, east, north)``."""

    try:
        x1, y1, x2, y2 = (float(value.replace(",", "")) for value in values)
    except ValueError as exc:
        raise click.BadParameter(f"extent values must be numbers: {' '.join(values)}") from exc
    return (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Stitch web-map tiles into a single image."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command(context_settings={"ignore_unknown_options": True})
@click.option("-z", "--zoom", type=click.IntRange(min=0), required=True, help="Zoom level")
@click.option(
    "-p", "--provider", required=True, help="Provider key or URL template with {z}/{x}/{y}"
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("out.jpg"),
    show_default=True,
    help="Output image file",
)
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice(["png", "jpeg", "jpg"], case_sensitive=False),
    default=None,
    help="Output format (defaults to the output file suffix)",
)
@click.option("--tile-size", type=click.IntRange(min=1), default=None, help="Tile size in pixels")
@click.argument("extent", nargs=4)
def stitch(
    zoom: int,
    provider: str,
    output: Path,
    fmt: str | None,
    tile_size: int | None,
    extent: Sequence[str],
) -> None:
    """Fetch the tiles covering MINX MINY MAXX MAXY at ZOOM and write one image."""
    bounds = normalize_extent(extent)
    config = load_stitch_config()
    if tile_size is not None:
        config = replace(config, tile_size=tile_size)
    fmt = (fmt or output.suffix.lstrip(".") or "jpeg").lower()

    try:
        template = resolve_template(provider)
        stitcher = Stitcher(config)
        view = stitcher.view_for_zoom(bounds, zoom)
        width, height = stitcher.dimensions(view)
        logger.debug("Resolved view %s at %dx%d", view, width, height)
        grid = stitcher.build_grid(view)
        click.echo(f"Fetching {len(grid)} tiles...")

        surface = asyncio.run(stitcher.stitch(template, view, grid=grid))
        target = stitcher.crop(surface, view, width, height)
        output.write_bytes(raster.encode(target, fmt))
    except StitchError as exc:
        click.echo(click.style(f"Error while stitching: {exc}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Wrote {width}x{height} image to {output}")


@cli.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True)
@click.option("--port", type=int, default=DEFAULT_PORT, show_default=True)
@click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True)
def serve(host: str, port: int, workers: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("mapstitch.main:create_app", factory=True, host=host, port=port, workers=workers)


if __name__ == "__main__":
    cli()
