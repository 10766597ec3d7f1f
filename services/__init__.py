"""
Services package for the Discord bot.

Business logic lives here: catalog access, channel binding persistence,
channel synchronization and the webhook relay. Cogs reach them through the
ServiceContainer attached to the bot.
"""

from .base import BaseService
from .catalog_client import CatalogClient
from .channel_store import ChannelStore
from .channel_sync import ChannelSyncService, SyncRun, SyncState
from .service_container import ServiceContainer
from .webhook_service import WebhookSendResult, WebhookService

__all__ = [
    "BaseService",
    "CatalogClient",
    "ChannelStore",
    "ChannelSyncService",
    "ServiceContainer",
    "SyncRun",
    "SyncState",
    "WebhookSendResult",
    "WebhookService",
]
