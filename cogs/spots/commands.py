"""Spot commands: /caves, /update and /populatethread."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any

import discord
from discord import app_commands
from discord.ext import commands

from constants import VALID_SERVERS
from helpers.channel_checks import (
    FORUM_PERMISSIONS,
    POST_PERMISSIONS,
    SYNC_PERMISSIONS,
    channel_kind,
    ensure_channel_ready,
)
from helpers.decorators import guarded_command, require_administrator
from helpers.error_messages import format_user_error, format_user_success
from helpers.interaction_guard import (
    acknowledge,
    describe_error,
    report_failure,
    respond_autocomplete_once,
    safe_edit_reply,
)
from utils.errors import PermissionDeniedError, StateError
from utils.logging import get_logger
from utils.types import ChannelBinding

if TYPE_CHECKING:
    from bot import MyBot
    from services.channel_sync import SyncRun

logger = get_logger(__name__)

SERVER_CHOICES = [app_commands.Choice(name=server, value=server) for server in VALID_SERVERS]
MODE_CHOICES = [
    app_commands.Choice(name="here", value="here"),
    app_commands.Choice(name="all", value="all"),
]


class SpotsCog(commands.Cog):
    """Mirror catalog spots into channels, threads and forums."""

    def __init__(self, bot: MyBot) -> None:
        self.bot = bot

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _defer_timeout(self) -> float:
        return self.bot.services.sync_settings.defer_timeout_seconds

    def _known_servers(self) -> tuple[str, ...]:
        return self.bot.services.catalog_settings.servers

    def _known_maps(self) -> tuple[str, ...]:
        return self.bot.services.catalog_settings.maps

    async def _lookup_channel(self, channel_id: int) -> Any:
        """Resolve a channel id from cache, then from the API. None if gone."""
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except (discord.NotFound, discord.Forbidden):
            return None

    async def _check_channel(
        self,
        interaction: discord.Interaction,
        channel: Any,
        required: tuple[tuple[str, str], ...],
        **kwargs: Any,
    ) -> bool:
        me = interaction.guild.me if interaction.guild else None
        try:
            ensure_channel_ready(channel, me, required, **kwargs)
        except (PermissionDeniedError, StateError) as e:
            await report_failure(interaction, describe_error(e, channel_kind(channel)))
            return False
        return True

    async def _report_run(
        self, interaction: discord.Interaction, run: SyncRun, success_code: str
    ) -> None:
        kind = channel_kind(run.channel)
        if not run.success:
            await report_failure(interaction, describe_error(run.error, kind))
            return
        binding = run.binding
        if run.no_records:
            message = format_user_success("NO_RECORDS", server=binding.server, map=binding.map)
        else:
            message = format_user_success(
                success_code,
                count=run.messages_sent,
                server=binding.server,
                map=binding.map,
                kind=kind,
            )
        await safe_edit_reply(interaction, message)

    # ------------------------------------------------------------------
    # /caves
    # ------------------------------------------------------------------

    @app_commands.command(
        name="caves", description="Get modded cave spots for a specific server and map"
    )
    @app_commands.describe(server="The server to get spots for", map_name="The map to get spots for")
    @app_commands.rename(map_name="map")
    @app_commands.choices(server=SERVER_CHOICES)
    @app_commands.guild_only()
    @require_administrator()
    @guarded_command
    async def caves(self, interaction: discord.Interaction, server: str, map_name: str) -> None:
        """Post a map's spots into this channel and remember the binding."""
        await acknowledge(interaction, self._defer_timeout)

        if server not in self._known_servers():
            await report_failure(interaction, format_user_error("INVALID_SERVER", server=server))
            return
        if map_name not in self._known_maps():
            await report_failure(interaction, format_user_error("INVALID_MAP", map=map_name))
            return

        channel = interaction.channel
        if not await self._check_channel(interaction, channel, POST_PERMISSIONS):
            return

        run = await self.bot.services.sync.post_records(
            channel,
            interaction.guild_id,
            ChannelBinding(server=server, map=map_name),
            progress=partial(safe_edit_reply, interaction),
        )
        await self._report_run(interaction, run, "POSTED")

    @caves.autocomplete("map_name")
    async def caves_map_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        needle = (current or "").lower()
        choices = [
            app_commands.Choice(name=map_name, value=map_name)
            for map_name in self._known_maps()
            if needle in map_name.lower()
        ]
        await respond_autocomplete_once(interaction, choices)
        return choices

    # ------------------------------------------------------------------
    # /update
    # ------------------------------------------------------------------

    @app_commands.command(
        name="update",
        description="Update cave spots (default: here). Optionally update all saved channels.",
    )
    @app_commands.describe(mode="Leave empty for this channel; choose all for every saved channel")
    @app_commands.choices(mode=MODE_CHOICES)
    @app_commands.guild_only()
    @require_administrator()
    @guarded_command
    async def update(self, interaction: discord.Interaction, mode: str | None = None) -> None:
        """Clear and repost this channel, or every saved channel in the server."""
        await acknowledge(interaction, self._defer_timeout)

        if (mode or "here") == "all":
            await self._update_all(interaction)
            return

        channel = interaction.channel
        if not await self._check_channel(interaction, channel, SYNC_PERMISSIONS):
            return

        run = await self.bot.services.sync.sync_here(
            channel, interaction.guild_id, progress=partial(safe_edit_reply, interaction)
        )
        await self._report_run(interaction, run, "UPDATED")

    async def _update_all(self, interaction: discord.Interaction) -> None:
        await safe_edit_reply(interaction, "Loading saved channels for this guild...")
        summary = await self.bot.services.sync.sync_guild(
            interaction.guild_id,
            self._lookup_channel,
            progress=partial(safe_edit_reply, interaction),
        )
        if not summary.outcomes:
            await report_failure(interaction, format_user_error("NO_SAVED_CHANNELS"))
            return
        for outcome in summary.outcomes:
            if not outcome.success:
                logger.warning(
                    f"Failed updating saved channel {outcome.channel_id}: {outcome.error}",
                    extra={"guild_id": interaction.guild_id, "channel_id": outcome.channel_id},
                )
        await safe_edit_reply(
            interaction,
            format_user_success(
                "FAN_OUT_DONE", succeeded=summary.succeeded, failed=summary.failed
            ),
        )

    # ------------------------------------------------------------------
    # /populatethread
    # ------------------------------------------------------------------

    @app_commands.command(
        name="populatethread",
        description="Create one forum post per map for a server in the given forum",
    )
    @app_commands.describe(server="The server to populate", forum_id="ID of the target forum channel")
    @app_commands.choices(server=SERVER_CHOICES)
    @app_commands.guild_only()
    @require_administrator()
    @guarded_command
    async def populatethread(
        self, interaction: discord.Interaction, server: str, forum_id: str
    ) -> None:
        """Fan out one forum post per map that has spots."""
        await acknowledge(interaction, self._defer_timeout)

        if server not in self._known_servers():
            await report_failure(interaction, format_user_error("INVALID_SERVER", server=server))
            return

        forum = None
        if forum_id.strip().isdigit():
            forum = await self._lookup_channel(int(forum_id.strip()))
        if forum is not None and getattr(forum.guild, "id", None) != interaction.guild_id:
            forum = None
        if forum is None:
            await report_failure(interaction, format_user_error("FORUM_NOT_FOUND"))
            return
        if not await self._check_channel(
            interaction, forum, FORUM_PERMISSIONS, allow_forum=True
        ):
            return

        summary = await self.bot.services.sync.populate_forum(
            forum, server, progress=partial(safe_edit_reply, interaction)
        )
        if summary.datasets_with_records == 0:
            await safe_edit_reply(interaction, format_user_success("NO_RECORDS_ANY", server=server))
            return
        await safe_edit_reply(
            interaction,
            format_user_success(
                "POPULATED",
                threads=len(summary.created_channel_ids),
                count=summary.messages_sent,
                server=server,
            ),
        )


async def setup(bot: commands.Bot) -> None:
    """Register the spots cog."""

    await bot.add_cog(SpotsCog(bot))
