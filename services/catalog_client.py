"""
Catalog client for the remote spots API.

Wraps the shared HTTPClient with the catalog's endpoints:
    GET {base}/spots?server=..&map=..[&category=..]
    GET {base}/servers

Errors from the HTTP layer are converted to UpstreamError so callers can
tell a failed fetch apart from a valid empty result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from helpers.http_helper import HTTPError
from services.base import BaseService
from utils.errors import UpstreamError
from utils.types import PointRecord

if TYPE_CHECKING:
    from config.settings import CatalogSettings
    from helpers.http_helper import HTTPClient


class CatalogClient(BaseService):
    """Reads spots and map listings from the catalog API."""

    def __init__(self, http_client: HTTPClient, settings: CatalogSettings) -> None:
        super().__init__("catalog")
        self.http_client = http_client
        self.settings = settings

    async def _initialize_impl(self) -> None:
        if not self.settings.base_url:
            self.logger.warning("API_BASE_URL is not configured; catalog calls will fail")
            return
        if await self.check_reachable():
            self.logger.info("Catalog API reachable at %s", self.settings.base_url)
        else:
            self.logger.warning("Catalog API unreachable at %s", self.settings.base_url)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        return headers

    def _url(self, path: str) -> str:
        if not self.settings.base_url:
            raise UpstreamError("Catalog base URL is not configured")
        return f"{self.settings.base_url}/{path.lstrip('/')}"

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        url = self._url(path)
        try:
            return await self.http_client.get_json(
                url, params=params, headers=self._headers(), retry=False
            )
        except HTTPError as e:
            raise UpstreamError(f"Catalog request to {path} failed: {e}", e.status) from e

    async def list_records(
        self, server: str, map_name: str, category: str | None = None
    ) -> list[PointRecord]:
        """
        Fetch spots for one server and map.

        Returns:
            Records in API order. An empty list means the catalog has no data.

        Raises:
            UpstreamError: On non-2xx status, transport failure, or a body that
                is not a JSON array.
        """
        params = {"map": map_name, "server": server}
        if category:
            params["category"] = category

        self.logger.info(
            "Fetching spots",
            extra={"server": server, "map": map_name},
        )
        data = await self._get_json("spots", params)
        if not isinstance(data, list):
            raise UpstreamError(
                f"Catalog returned {type(data).__name__} for spots, expected a list"
            )

        records: list[PointRecord] = []
        for item in data:
            if not isinstance(item, dict):
                self.logger.warning("Skipping malformed spot entry: %r", item)
                continue
            records.append(PointRecord.from_api(item))

        self.logger.info(f"Fetched {len(records)} spots for server: {server}, map: {map_name}")
        return records

    async def list_servers(self) -> list[Any]:
        """Return the raw ``/servers`` listing."""
        data = await self._get_json("servers")
        if not isinstance(data, list):
            raise UpstreamError(
                f"Catalog returned {type(data).__name__} for servers, expected a list"
            )
        return data

    async def list_maps_for_server(self, server: str) -> list[str]:
        """
        Return the distinct maps that have spots on ``server``.

        Never raises: any failure, or an empty/unrecognized listing, yields the
        configured fallback map list.
        """
        params = {"server": server, "category": self.settings.category, "distinct": "map"}
        try:
            data = await self._get_json("spots", params)
            maps: list[str] = []
            if isinstance(data, list):
                for item in data:
                    value = item if isinstance(item, str) else (
                        item.get("map") if isinstance(item, dict) else None
                    )
                    if isinstance(value, str) and value and value not in maps:
                        maps.append(value)
            if maps:
                self.logger.info(f"Derived {len(maps)} maps from API for server {server}")
                return maps
            self.logger.info("Catalog listed no maps for %s; using fallback list", server)
        except Exception as e:
            self.logger.warning(
                "Listing maps for %s failed, falling back to default maps: %s", server, e
            )
        return list(self.settings.maps)

    async def check_reachable(self) -> bool:
        """Best-effort liveness probe against ``/servers``."""
        try:
            await self.http_client.request(
                "GET", self._url("servers"), headers=self._headers(), retry=False
            )
            return True
        except Exception as e:
            self.logger.warning("API connection test failed: %s", e)
            return False

    async def health_check(self) -> dict[str, Any]:
        status = await super().health_check()
        status["base_url_configured"] = bool(self.settings.base_url)
        return status
