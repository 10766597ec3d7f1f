"""
Channel Store

Durable mapping of (guild, channel) to the (server, map) pair the channel mirrors.

On-disk format (JSON):
    {"<guild_id>": {"<channel_id>": {"server": "INX", "map": "The Island"}}}

The file is opened per operation. A missing or corrupt file reads as an empty
store and is recreated by the next write. Writes are serialized within the
process; separate processes sharing one file are not coordinated.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from helpers.atomic_write import AtomicWriteError, atomic_write_json
from services.base import BaseService
from utils.types import ChannelBinding


class ChannelStore(BaseService):
    """Persists channel bindings and enforces one channel per (server, map) per guild."""

    def __init__(self, path: str | Path) -> None:
        super().__init__("channel_store")
        self.path = Path(path)
        self._write_lock = asyncio.Lock()

    async def _initialize_impl(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = await asyncio.to_thread(self._read)
        bindings = sum(len(channels) for channels in data.values())
        self.logger.info(
            f"Channel store at {self.path}: {len(data)} guilds, {bindings} bindings"
        )

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, dict[str, Any]]:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to read channel store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            self.logger.warning(f"Channel store {self.path} is not a JSON object; ignoring")
            return {}
        return {
            str(guild_id): channels
            for guild_id, channels in data.items()
            if isinstance(channels, dict)
        }

    def _write(self, data: dict[str, dict[str, Any]]) -> bool:
        try:
            atomic_write_json(self.path, data)
            return True
        except AtomicWriteError as e:
            self.logger.error(f"Failed to save channel store: {e}")
            return False

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def put(
        self, guild_id: int | str, channel_id: int | str, binding: ChannelBinding
    ) -> list[str]:
        """
        Bind a channel, evicting any other channel in the guild bound to the same pair.

        Returns:
            Channel ids whose bindings were evicted.
        """
        guild_key, channel_key = str(guild_id), str(channel_id)
        async with self._write_lock:
            data = await asyncio.to_thread(self._read)
            channels = data.setdefault(guild_key, {})

            evicted = [
                other_id
                for other_id, raw in channels.items()
                if other_id != channel_key and ChannelBinding.from_dict(raw) == binding
            ]
            for other_id in evicted:
                del channels[other_id]
                self.logger.info(
                    f"Evicted binding {binding} from channel {other_id}",
                    extra={"guild_id": guild_key, "channel_id": other_id},
                )

            channels[channel_key] = binding.to_dict()
            await asyncio.to_thread(self._write, data)

        self.logger.info(
            f"Saved binding {binding}",
            extra={"guild_id": guild_key, "channel_id": channel_key},
        )
        return evicted

    async def get(self, guild_id: int | str, channel_id: int | str) -> ChannelBinding | None:
        data = await asyncio.to_thread(self._read)
        return ChannelBinding.from_dict(data.get(str(guild_id), {}).get(str(channel_id)))

    async def get_all(self, guild_id: int | str) -> dict[str, ChannelBinding]:
        """All valid bindings in a guild, keyed by channel id (string, file order)."""
        data = await asyncio.to_thread(self._read)
        result: dict[str, ChannelBinding] = {}
        for channel_id, raw in data.get(str(guild_id), {}).items():
            binding = ChannelBinding.from_dict(raw)
            if binding is None:
                self.logger.warning(
                    f"Ignoring malformed binding for channel {channel_id}",
                    extra={"guild_id": str(guild_id)},
                )
                continue
            result[channel_id] = binding
        return result

    async def remove(self, guild_id: int | str, channel_id: int | str) -> bool:
        """Delete a binding. Returns False if there was none."""
        guild_key, channel_key = str(guild_id), str(channel_id)
        async with self._write_lock:
            data = await asyncio.to_thread(self._read)
            channels = data.get(guild_key)
            if not channels or channel_key not in channels:
                return False
            del channels[channel_key]
            if not channels:
                del data[guild_key]
            await asyncio.to_thread(self._write, data)
        self.logger.info("Removed binding", extra={"guild_id": guild_key, "channel_id": channel_key})
        return True

    async def remove_guild(self, guild_id: int | str) -> int:
        """Delete every binding of a guild. Returns how many were removed."""
        guild_key = str(guild_id)
        async with self._write_lock:
            data = await asyncio.to_thread(self._read)
            channels = data.pop(guild_key, None)
            if not channels:
                return 0
            await asyncio.to_thread(self._write, data)
        return len(channels)

    async def health_check(self) -> dict[str, Any]:
        status = await super().health_check()
        status["path"] = str(self.path)
        status["exists"] = self.path.exists()
        return status
