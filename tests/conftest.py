import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Ensure project root is on sys.path for CI environments where
# Python might not automatically include it (e.g., some GitHub
# Actions runners invoking pytest differently).
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import CatalogSettings, StorageSettings, SyncSettings
from helpers.spot_renderer import SpotRenderer
from services.channel_store import ChannelStore
from services.channel_sync import ChannelSyncService
from tests.factories import FakeBot, FakeCatalog, FakeHTTPClient


@pytest.fixture
def sync_settings() -> SyncSettings:
    """Sync limits with every throttle delay disabled."""
    return SyncSettings(
        clear_delay_seconds=0,
        channel_delay_seconds=0,
        forum_delay_seconds=0,
        defer_timeout_seconds=1.0,
    )


@pytest_asyncio.fixture()
async def store(tmp_path):
    """ChannelStore backed by a temporary file."""
    channel_store = ChannelStore(tmp_path / "data" / "channel-store.json")
    await channel_store.initialize()
    yield channel_store
    await channel_store.shutdown()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def http_client() -> FakeHTTPClient:
    return FakeHTTPClient()


@pytest.fixture
def renderer(http_client) -> SpotRenderer:
    return SpotRenderer(http_client, max_messages=50)


@pytest.fixture
def sync_service(catalog, store, renderer, sync_settings) -> ChannelSyncService:
    return ChannelSyncService(catalog, store, renderer, sync_settings)


@pytest.fixture
def services(catalog, store, sync_service, sync_settings):
    """A ServiceContainer-shaped namespace wired with test doubles."""
    return SimpleNamespace(
        catalog=catalog,
        store=store,
        sync=sync_service,
        webhook=None,
        catalog_settings=CatalogSettings(),
        storage_settings=StorageSettings(),
        sync_settings=sync_settings,
    )


@pytest.fixture
def mock_bot(services) -> FakeBot:
    """A minimal bot-like object for cog tests."""
    return FakeBot(services=services)
