from __future__ import annotations

import io
from typing import Dict, List, Tuple

import httpx
import pytest
from PIL import Image


def tile_bytes(color=(120, 200, 150), size: int = 256, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (size, size), color=color).save(buffer, format=fmt)
    return buffer.getvalue()


def truncated_tile_bytes(size: int = 256) -> bytes:
    buffer = io.BytesIO()
    Image.effect_noise((size, size), 64).convert("RGB").save(buffer, format="PNG")
    data = buffer.getvalue()
    return data[: len(data) // 2]


class DummyResponse:
    def __init__(self, url: str, status_code: int, content: bytes):
        self._url = httpx.URL(url)
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": "image/png"}

    @property
    def url(self) -> httpx.URL:
        return self._url


class FakeTileServer:
    """Stands in for the remote tile provider behind ``httpx.AsyncClient``."""

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.clients_opened = 0
        self.default: Tuple[int, bytes] = (200, tile_bytes())
        self.routes: Dict[str, object] = {}

    def respond(self, url: str):
        self.calls.append(url)
        route = self.routes.get(url, self.default)
        if isinstance(route, Exception):
            raise route
        status_code, content = route
        return DummyResponse(url, status_code, content)


@pytest.fixture()
def tile_server(monkeypatch) -> FakeTileServer:
    server = FakeTileServer()

    class MockAsyncClient:
        def __init__(self, *args, **kwargs):
            server.clients_opened += 1

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return None

        async def aclose(self) -> None:
            return None

        async def get(self, url: str, params=None, headers=None):
            return server.respond(url)

    monkeypatch.setattr(httpx, "AsyncClient", MockAsyncClient)
    return server
