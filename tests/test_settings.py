"""
Typed settings tests: defaults, env overrides, token and deploy scope.
"""

import dataclasses

import pytest

from config.settings import (
    CatalogSettings,
    StorageSettings,
    SyncSettings,
    load_token,
    resolve_deploy_scope,
)
from constants import FALLBACK_MAPS, VALID_SERVERS
from tests.factories import make_config, make_invalid_config
from utils.errors import ConfigurationError

ENV_KEYS = (
    "API_BASE_URL",
    "API_KEY",
    "CHANNEL_STORE_PATH",
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "DISCORD_TOKEN",
    "DISCORD_GUILD_ID",
    "DEPLOY_SCOPE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestCatalogSettings:
    def test_defaults_without_config(self):
        settings = CatalogSettings.from_config(None)
        assert settings.base_url == ""
        assert settings.category == "modded"
        assert settings.servers == VALID_SERVERS
        assert settings.maps == FALLBACK_MAPS

    def test_reads_yaml_section(self):
        settings = CatalogSettings.from_config(make_config())
        assert settings.base_url == "https://catalog.example.com/api"

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("API_BASE_URL", "https://other.example.com/api/")
        monkeypatch.setenv("API_KEY", "k")
        settings = CatalogSettings.from_config(make_config())
        assert settings.base_url == "https://other.example.com/api"
        assert settings.api_key == "k"

    def test_wrong_type_sections_use_defaults(self):
        config = make_invalid_config("wrong_type_sections")
        assert CatalogSettings.from_config(config).servers == VALID_SERVERS
        assert SyncSettings.from_config(config).max_messages == 50


class TestStorageSettings:
    def test_supabase_env_sets_public_storage(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
        assert StorageSettings.from_config(None).public_storage_url == "https://abc.supabase.co"

    def test_store_path_env(self, monkeypatch):
        monkeypatch.setenv("CHANNEL_STORE_PATH", "/tmp/bindings.json")
        assert StorageSettings.from_config(make_config()).channel_store_path == "/tmp/bindings.json"


class TestSyncSettings:
    def test_batch_size_clamped_to_discord_limit(self):
        config = make_config(sync={"clear_batch_size": 500})
        assert SyncSettings.from_config(config).clear_batch_size == 100

    def test_delays_read_from_config(self):
        settings = SyncSettings.from_config(make_config())
        assert settings.clear_delay_seconds == 0
        assert settings.bulk_delete_max_age_days == 14

    def test_non_numeric_values_fall_back_to_defaults(self):
        config = make_config(
            sync={"max_messages": "lots", "clear_delay_seconds": "soon", "history_scan_limit": None}
        )
        settings = SyncSettings.from_config(config)
        assert settings.max_messages == 50
        assert settings.clear_delay_seconds == 1.0
        assert settings.history_scan_limit == 100

    def test_numeric_strings_are_coerced(self):
        settings = SyncSettings.from_config(make_config(sync={"forum_delay_seconds": "0.5"}))
        assert settings.forum_delay_seconds == 0.5

    def test_catalog_timeout_tolerates_bad_value(self):
        config = make_config(catalog={"timeout": "fast", "concurrency": True})
        settings = CatalogSettings.from_config(config)
        assert (settings.timeout, settings.concurrency) == (15, 4)

    def test_settings_are_immutable(self):
        settings = SyncSettings()
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.max_messages = 10


class TestLoadToken:
    def test_missing_token(self):
        with pytest.raises(ConfigurationError):
            load_token()

    def test_blank_token(self, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "   ")
        with pytest.raises(ConfigurationError):
            load_token()

    def test_token(self, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "abc.def")
        assert load_token() == "abc.def"


class TestDeployScope:
    def test_global_by_default(self):
        assert resolve_deploy_scope([]) == ("global", None)

    def test_guild_id_implies_guild_scope(self, monkeypatch):
        monkeypatch.setenv("DISCORD_GUILD_ID", "42")
        assert resolve_deploy_scope([]) == ("guild", 42)

    def test_global_flag_wins_over_guild_id(self, monkeypatch):
        monkeypatch.setenv("DISCORD_GUILD_ID", "42")
        assert resolve_deploy_scope(["--global"]) == ("global", None)

    def test_env_scope(self, monkeypatch):
        monkeypatch.setenv("DISCORD_GUILD_ID", "42")
        monkeypatch.setenv("DEPLOY_SCOPE", "global")
        assert resolve_deploy_scope([]) == ("global", None)

    def test_guild_flag_without_id(self):
        with pytest.raises(ConfigurationError):
            resolve_deploy_scope(["--guild"])

    def test_non_numeric_guild_id(self, monkeypatch):
        monkeypatch.setenv("DISCORD_GUILD_ID", "my-guild")
        with pytest.raises(ConfigurationError):
            resolve_deploy_scope(["--guild"])
