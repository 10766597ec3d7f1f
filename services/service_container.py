"""
Service Container

Central registry for the bot's services: builds them from configuration in
dependency order and tears them down in reverse.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from config.settings import CatalogSettings, StorageSettings, SyncSettings
from helpers.spot_renderer import SpotRenderer
from utils.logging import get_logger

from .catalog_client import CatalogClient
from .channel_store import ChannelStore
from .channel_sync import ChannelSyncService
from .webhook_service import WebhookService

if TYPE_CHECKING:
    from helpers.http_helper import HTTPClient


class ServiceContainer:
    """
    Central container for managing all bot services.

    Services share the bot's HTTPClient; the container does not own it.
    """

    def __init__(self, http_client: HTTPClient, config: dict[str, Any] | None = None) -> None:
        self.logger = get_logger("services.container")
        self.http_client = http_client
        self.catalog_settings = CatalogSettings.from_config(config)
        self.storage_settings = StorageSettings.from_config(config)
        self.sync_settings = SyncSettings.from_config(config)
        self._catalog: CatalogClient | None = None
        self._store: ChannelStore | None = None
        self._sync: ChannelSyncService | None = None
        self._webhook: WebhookService | None = None
        self._initialized = False

    @property
    def catalog(self) -> CatalogClient:
        """Get the catalog client."""
        if self._catalog is None:
            raise RuntimeError("CatalogClient not initialized")
        return self._catalog

    @property
    def store(self) -> ChannelStore:
        """Get the channel store."""
        if self._store is None:
            raise RuntimeError("ChannelStore not initialized")
        return self._store

    @property
    def sync(self) -> ChannelSyncService:
        """Get the channel synchronizer."""
        if self._sync is None:
            raise RuntimeError("ChannelSyncService not initialized")
        return self._sync

    @property
    def webhook(self) -> WebhookService:
        """Get the webhook relay."""
        if self._webhook is None:
            raise RuntimeError("WebhookService not initialized")
        return self._webhook

    def get_all_services(self) -> list:
        """Get all initialized services for health monitoring."""
        return [
            service
            for service in (self._catalog, self._store, self._sync, self._webhook)
            if service is not None
        ]

    async def initialize(self) -> None:
        """Initialize all services in dependency order."""
        if self._initialized:
            self.logger.warning("ServiceContainer already initialized")
            return

        try:
            self.logger.info("Initializing services")

            self._catalog = CatalogClient(self.http_client, self.catalog_settings)
            await self._catalog.initialize()

            self._store = ChannelStore(self.storage_settings.channel_store_path)
            await self._store.initialize()

            renderer = SpotRenderer(
                self.http_client,
                max_messages=self.sync_settings.max_messages,
                public_storage_url=self.storage_settings.public_storage_url,
            )
            self._sync = ChannelSyncService(
                self._catalog, self._store, renderer, self.sync_settings
            )
            await self._sync.initialize()

            self._webhook = WebhookService(self.http_client)
            await self._webhook.initialize()

            self._initialized = True
            self.logger.info("All services initialized successfully")

        except Exception as e:
            self.logger.exception("Failed to initialize services", exc_info=e)
            raise

    async def health_check(self) -> dict[str, Any]:
        return {
            service.name: await service.health_check()
            for service in self.get_all_services()
        }

    async def cleanup(self) -> None:
        """Clean up all services in reverse dependency order."""
        if not self._initialized:
            return

        self.logger.info("Cleaning up services")
        for service in reversed(self.get_all_services()):
            await service.shutdown()
        self._catalog = self._store = self._sync = self._webhook = None

        self._initialized = False
        self.logger.info("Services cleaned up")
