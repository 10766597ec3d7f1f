"""
Typed views over the raw configuration mapping.

Each settings class is built with ``from_config(config)``, which tolerates a
missing or malformed section and falls back to defaults. Environment
variables (loaded from .env) override the matching YAML keys.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from constants import FALLBACK_MAPS, VALID_SERVERS
from utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _section(config: dict[str, Any] | None, key: str) -> dict[str, Any]:
    if not config or not isinstance(config, dict):
        return {}
    value = config.get(key)
    return value if isinstance(value, dict) else {}


def _number(cfg: dict[str, Any], key: str, default: Any) -> Any:
    """Coerce ``cfg[key]`` to the type of ``default``; unusable values give the default."""
    value = cfg.get(key, default)
    if isinstance(value, bool):
        return default
    try:
        return type(default)(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric setting {key}={value!r}; using {default}")
        return default


def _string_list(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(value, list):
        items = tuple(str(v) for v in value if isinstance(v, str) and v.strip())
        if items:
            return items
    return default


@dataclass(frozen=True)
class CatalogSettings:
    """Connection settings for the spots catalog API."""

    base_url: str = ""
    api_key: str | None = None
    category: str = "modded"
    timeout: int = 15
    concurrency: int = 4
    servers: tuple[str, ...] = VALID_SERVERS
    maps: tuple[str, ...] = FALLBACK_MAPS

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> CatalogSettings:
        cfg = _section(config, "catalog")
        base_url = os.getenv("API_BASE_URL") or cfg.get("base_url") or ""
        api_key = os.getenv("API_KEY") or cfg.get("api_key") or None
        return cls(
            base_url=str(base_url).rstrip("/"),
            api_key=api_key,
            category=str(cfg.get("category", "modded")),
            timeout=_number(cfg, "timeout", 15),
            concurrency=_number(cfg, "concurrency", 4),
            servers=_string_list(cfg.get("servers"), VALID_SERVERS),
            maps=_string_list(cfg.get("maps"), FALLBACK_MAPS),
        )


@dataclass(frozen=True)
class StorageSettings:
    """Where channel bindings live and which media host is ours."""

    channel_store_path: str = "data/channel-store.json"
    public_storage_url: str | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> StorageSettings:
        cfg = _section(config, "storage")
        path = os.getenv("CHANNEL_STORE_PATH") or cfg.get("channel_store_path")
        public_url = (
            os.getenv("SUPABASE_URL")
            or os.getenv("NEXT_PUBLIC_SUPABASE_URL")
            or cfg.get("public_storage_url")
            or None
        )
        return cls(
            channel_store_path=str(path or "data/channel-store.json"),
            public_storage_url=public_url,
        )


@dataclass(frozen=True)
class SyncSettings:
    """Limits and throttling delays for channel synchronization."""

    max_messages: int = 50
    clear_batch_size: int = 100
    clear_delay_seconds: float = 1.0
    channel_delay_seconds: float = 1.0
    forum_delay_seconds: float = 2.0
    history_scan_limit: int = 100
    bulk_delete_max_age_days: int = 14
    defer_timeout_seconds: float = 2.0

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> SyncSettings:
        cfg = _section(config, "sync")
        # Discord bulk delete accepts at most 100 messages per call
        batch_size = max(2, min(100, _number(cfg, "clear_batch_size", 100)))
        return cls(
            max_messages=max(2, _number(cfg, "max_messages", 50)),
            clear_batch_size=batch_size,
            clear_delay_seconds=_number(cfg, "clear_delay_seconds", 1.0),
            channel_delay_seconds=_number(cfg, "channel_delay_seconds", 1.0),
            forum_delay_seconds=_number(cfg, "forum_delay_seconds", 2.0),
            history_scan_limit=_number(cfg, "history_scan_limit", 100),
            bulk_delete_max_age_days=_number(cfg, "bulk_delete_max_age_days", 14),
            defer_timeout_seconds=_number(cfg, "defer_timeout_seconds", 2.0),
        )


# ---------------------------------------------------------------------------
# Environment-only settings
# ---------------------------------------------------------------------------


def load_token() -> str:
    """
    Return the Discord bot token from the environment.

    Raises:
        ConfigurationError: If DISCORD_TOKEN is unset or blank.
    """
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise ConfigurationError("DISCORD_TOKEN not set.")
    return token


def resolve_deploy_scope(argv: list[str] | None = None) -> tuple[str, int | None]:
    """
    Decide where application commands are synced.

    Priority: ``--guild``/``--global`` CLI flag, then DEPLOY_SCOPE env var,
    then guild scope when DISCORD_GUILD_ID is set, else global.

    Returns:
        Tuple of (scope, guild_id). guild_id is None for global scope.

    Raises:
        ConfigurationError: Guild scope was requested without a valid DISCORD_GUILD_ID.
    """
    argv = argv or []
    env_scope = os.getenv("DEPLOY_SCOPE", "").strip().lower()
    raw_guild_id = os.getenv("DISCORD_GUILD_ID", "").strip()

    if "--guild" in argv:
        use_guild = True
    elif "--global" in argv:
        use_guild = False
    elif env_scope in ("guild", "global"):
        use_guild = env_scope == "guild"
    else:
        use_guild = bool(raw_guild_id)

    if not use_guild:
        return "global", None

    if not raw_guild_id:
        raise ConfigurationError("Cannot deploy to guild: DISCORD_GUILD_ID is not set")
    try:
        return "guild", int(raw_guild_id)
    except ValueError as e:
        raise ConfigurationError(
            f"DISCORD_GUILD_ID must be a numeric id, got {raw_guild_id!r}"
        ) from e
