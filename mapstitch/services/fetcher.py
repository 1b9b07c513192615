from __future__ import annotations

import asyncio
import io
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from ..config import DEFAULT_MAX_CONCURRENCY, DEFAULT_REQUEST_TIMEOUT, DEFAULT_USER_AGENT
from ..errors import BatchAbortError, DecodeError, ValidationError
from .projection import TileCoordinate

logger = logging.getLogger(__name__)

_PLACEHOLDERS = (
    (re.compile(r"\{z\}", re.IGNORECASE), "zoom"),
    (re.compile(r"\{x\}", re.IGNORECASE), "x"),
    (re.compile(r"\{y\}", re.IGNORECASE), "y"),
)

# (slot index, tile, url)
TileRequest = Tuple[int, TileCoordinate, str]


@dataclass(frozen=True)
class TransportOutcome:
    """What the HTTP client produced for a single tile request."""

    url: str
    response: httpx.Response | None = None
    error: Exception | None = None


@dataclass
class FetchSlot:
    """Write-once result cell for the tile at ``index`` in grid order."""

    index: int
    tile: TileCoordinate
    url: str
    image: Image.Image | None = field(default=None)
    error: str | None = field(default=None)

    @property
    def present(self) -> bool:
        return self.image is not None


class TileValidator(ABC):
    """Decides whether a tile response is usable.

    ``validate`` returns normally to accept the response, raises
    :class:`ValidationError` to drop just this tile, or raises
    :class:`BatchAbortError` to fail the whole batch once it has settled.
    """

    @abstractmethod
    def validate(self, outcome: TransportOutcome) -> None:
        raise NotImplementedError


class StatusCodeValidator(TileValidator):
    """Reject tiles whose request failed or did not return ``200 OK``."""

    def validate(self, outcome: TransportOutcome) -> None:
        if outcome.error is not None:
            raise ValidationError(f"request failed: {outcome.error}")
        if outcome.response is None:
            raise ValidationError("no response received")
        if outcome.response.status_code != 200:
            raise ValidationError(
                f"Request returned non-200 status code: {outcome.response.status_code}"
            )


def build_urls(template: str, tiles: Sequence[TileCoordinate]) -> List[str]:
    """Substitute ``{z}``, ``{x}`` and ``{y}`` for every tile, preserving order."""

    urls: List[str] = []
    for tile in tiles:
        url = template
        for pattern, attribute in _PLACEHOLDERS:
            url = pattern.sub(str(getattr(tile, attribute)), url)
        urls.append(url)
    return urls


def decode_tile(content: bytes, url: str) -> Image.Image:
    """Open a tile body as an image tagged with the URL it came from.

    Only the header is parsed here; pixel data is decoded when the tile is
    drawn, so truncated bodies surface in the compositor.
    """

    try:
        image = Image.open(io.BytesIO(content))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeError(f"unable to decode tile image from {url}: {exc}") from exc
    image.info["source_url"] = url
    return image


class TileFetcher:
    """Fetch a batch of tiles concurrently, isolating per-tile failures."""

    def __init__(
        self,
        validator: TileValidator | None = None,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.validator = validator or StatusCodeValidator()
        self.max_concurrency = max(1, max_concurrency)
        self.timeout = httpx.Timeout(timeout)
        self.user_agent = user_agent

    async def fetch_all(
        self,
        requests: Sequence[TileRequest],
        client: httpx.AsyncClient | None = None,
    ) -> List[FetchSlot]:
        """Fetch every request and return one slot per request in index order.

        All requests are issued together, gated by ``max_concurrency``, and the
        call returns only after each of them has settled. A
        :class:`BatchAbortError` raised by the validator is re-raised at that
        point; other requests are not cancelled.
        """

        slots: List[FetchSlot | None] = [None] * len(requests)
        for index, tile, url in requests:
            if not 0 <= index < len(slots) or slots[index] is not None:
                raise ValueError(f"Invalid or duplicate slot index {index}")
            slots[index] = FetchSlot(index=index, tile=tile, url=url)

        started = time.perf_counter()
        if client is None:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers={"User-Agent": self.user_agent}
            ) as owned_client:
                results = await self._run_batch(owned_client, slots)
        else:
            results = await self._run_batch(client, slots)
        logger.debug(
            "Fetched %d tiles in %.1f ms", len(slots), (time.perf_counter() - started) * 1000
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result

        failed = [slot for slot in slots if slot is not None and not slot.present]
        if failed:
            logger.warning("%d of %d tiles unavailable", len(failed), len(slots))
        return [slot for slot in slots if slot is not None]

    async def _run_batch(
        self, client: httpx.AsyncClient, slots: Sequence[FetchSlot | None]
    ) -> List[object]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(slot: FetchSlot) -> None:
            async with semaphore:
                await self._fetch_slot(client, slot)

        return await asyncio.gather(
            *(run(slot) for slot in slots if slot is not None), return_exceptions=True
        )

    async def _fetch_slot(self, client: httpx.AsyncClient, slot: FetchSlot) -> None:
        started = time.perf_counter()
        try:
            response = await client.get(slot.url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            outcome = TransportOutcome(url=slot.url, error=exc)
        else:
            outcome = TransportOutcome(url=slot.url, response=response)
        logger.debug("%s: %.1f ms", slot.url, (time.perf_counter() - started) * 1000)

        try:
            self.validator.validate(outcome)
        except BatchAbortError:
            raise
        except ValidationError as exc:
            slot.error = str(exc)
            logger.warning("Tile %s rejected: %s", slot.url, exc)
            return

        response = outcome.response
        if response is None or response.status_code != 200 or not response.content:
            # accepted by the validator, but there is no image to draw
            return

        try:
            slot.image = decode_tile(response.content, slot.url)
        except DecodeError as exc:
            slot.error = str(exc)
            logger.warning("%s", exc)
