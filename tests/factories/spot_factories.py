"""
Catalog Factories

Fake catalog client, fake HTTP client and record builders for service tests.
"""

from __future__ import annotations

import itertools
import json
from typing import Any

from config.settings import CatalogSettings
from helpers.http_helper import HTTPError, HTTPResponse
from utils.types import PointRecord

_record_ids = itertools.count(1)


def make_record(
    name: str = "Spot",
    spot_type: str = "cave",
    *,
    server: str = "INX",
    map_name: str = "The Island",
    **overrides: Any,
) -> PointRecord:
    """Create a PointRecord with defaults; keyword overrides use field names."""
    fields: dict[str, Any] = {
        "id": str(next(_record_ids)),
        "name": name,
        "x": 50.1,
        "y": 42.7,
        "type": spot_type,
        "map": map_name,
        "server": server,
        "category": "modded",
    }
    fields.update(overrides)
    return PointRecord(**fields)


class FakeCatalog:
    """
    In-memory stand-in for CatalogClient.

    ``datasets`` maps (server, map) to a list of records, or to an exception
    that list_records raises.
    """

    def __init__(
        self,
        datasets: dict[tuple[str, str], Any] | None = None,
        maps: list[str] | None = None,
        settings: CatalogSettings | None = None,
    ) -> None:
        self.datasets = datasets or {}
        self.maps = maps
        self.settings = settings or CatalogSettings(base_url="https://catalog.example.com/api")
        self.calls: list[tuple[str, str, str | None]] = []

    async def list_records(
        self, server: str, map_name: str, category: str | None = None
    ) -> list[PointRecord]:
        self.calls.append((server, map_name, category))
        result = self.datasets.get((server, map_name), [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def list_maps_for_server(self, server: str) -> list[str]:
        if self.maps is not None:
            return list(self.maps)
        return [m for s, m in self.datasets if s == server]


class FakeHTTPClient:
    """
    Records requests and replays canned responses.

    ``responses`` maps a URL (without query) to a decoded JSON body, raw
    bytes, or an exception to raise.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[dict[str, Any]] = []

    def _lookup(self, url: str) -> Any:
        result = self.responses.get(url)
        if isinstance(result, Exception):
            raise result
        if url not in self.responses:
            raise HTTPError(f"No canned response for {url}", 404)
        return result

    async def request(self, method: str, url: str, **kwargs: Any) -> HTTPResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        body = self._lookup(url)
        if not isinstance(body, bytes):
            body = json.dumps(body).encode("utf-8")
        return HTTPResponse(status=200, body=body, content_type="application/json")

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._lookup(url)

    async def get_bytes(self, url: str, **kwargs: Any) -> bytes:
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._lookup(url)

    async def post_json(self, url: str, payload: Any, **kwargs: Any) -> HTTPResponse:
        self.calls.append({"method": "POST", "url": url, "payload": payload, **kwargs})
        body = self._lookup(url)
        if not isinstance(body, bytes):
            body = json.dumps(body).encode("utf-8")
        return HTTPResponse(status=200, body=body, content_type="application/json")
