"""
Channel Synchronizer

Mirrors one map's spots into a text channel, thread or forum post.

A synchronization pass is a small state machine:

    RESOLVE -> CLEAR -> FETCH -> RENDER -> EMIT -> REPORT
        \\________\\________\\________\\________\\-----> FAILED

Each state has one handler that returns the next state. Any exception raised
by a handler moves the run to FAILED, so one bad channel never escapes the
pass that owns it. Guild-wide updates and forum population run one pass per
channel and tally the outcomes.
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

import discord

from helpers.channel_checks import channel_kind, ensure_channel_ready, is_text_or_thread, is_thread
from helpers.spot_renderer import format_dataset_header, parse_dataset_header
from services.base import BaseService
from utils.errors import StateError
from utils.types import (
    ChannelBinding,
    FanOutSummary,
    PointRecord,
    PopulateSummary,
    RenderedMessage,
    SyncOutcome,
)

if TYPE_CHECKING:
    from config.settings import SyncSettings
    from helpers.spot_renderer import SpotRenderer
    from services.catalog_client import CatalogClient
    from services.channel_store import ChannelStore

Progress = Callable[[str], Awaitable[Any]]
ChannelLookup = Callable[[int], Awaitable[Any]]


class SyncState(Enum):
    RESOLVE = "resolve"
    CLEAR = "clear"
    FETCH = "fetch"
    RENDER = "render"
    EMIT = "emit"
    REPORT = "report"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SyncState.REPORT, SyncState.FAILED})


@dataclass
class SyncRun:
    """Mutable context of one pass over one channel."""

    channel: Any
    guild_id: int | None = None
    binding: ChannelBinding | None = None
    # Flow switches
    clear: bool = True
    preflight: bool = False
    header_sent: bool = False
    persist_on_success: bool = False
    progress: Progress | None = None
    # Results
    records: list[PointRecord] = field(default_factory=list)
    messages: AsyncIterator[RenderedMessage] | None = None
    messages_sent: int = 0
    deleted: int = 0
    state: SyncState = SyncState.RESOLVE
    visited: list[SyncState] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def channel_id(self) -> int:
        return self.channel.id

    @property
    def success(self) -> bool:
        return self.state == SyncState.REPORT

    @property
    def no_records(self) -> bool:
        return self.success and not self.records

    def outcome(self) -> SyncOutcome:
        return SyncOutcome(
            channel_id=self.channel_id,
            success=self.success,
            messages_sent=self.messages_sent,
            error=str(self.error) if self.error else None,
        )

    async def report_progress(self, text: str) -> None:
        if self.progress is not None:
            await self.progress(text)


class ChannelSyncService(BaseService):
    """Resolves, clears, fetches, renders and emits map spots into channels."""

    def __init__(
        self,
        catalog: CatalogClient,
        store: ChannelStore,
        renderer: SpotRenderer,
        settings: SyncSettings,
    ) -> None:
        super().__init__("channel_sync")
        self.catalog = catalog
        self.store = store
        self.renderer = renderer
        self.settings = settings
        self._handlers: dict[SyncState, Callable[[SyncRun], Awaitable[SyncState | None]]] = {
            SyncState.RESOLVE: self._resolve,
            SyncState.CLEAR: self._clear,
            SyncState.FETCH: self._fetch,
            SyncState.RENDER: self._render,
            SyncState.EMIT: self._emit,
            SyncState.REPORT: self._report,
            SyncState.FAILED: self._fail,
        }

    async def _initialize_impl(self) -> None:
        self.logger.info(
            f"Sync limits: max_messages={self.renderer.max_messages}, "
            f"clear_batch_size={self.settings.clear_batch_size}"
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _drive(self, run: SyncRun, start: SyncState) -> SyncRun:
        state = start
        while True:
            run.state = state
            run.visited.append(state)
            try:
                next_state = await self._handlers[state](run)
            except Exception as e:
                if state == SyncState.FAILED:
                    self.logger.exception("Error while recording sync failure", exc_info=e)
                    return run
                run.error = e
                state = SyncState.FAILED
                continue
            if state in TERMINAL_STATES:
                return run
            state = next_state

    def _extra(self, run: SyncRun) -> dict[str, Any]:
        extra: dict[str, Any] = {"channel_id": run.channel_id, "guild_id": run.guild_id}
        if run.binding:
            extra["server"] = run.binding.server
            extra["map"] = run.binding.map
        return extra

    async def _resolve(self, run: SyncRun) -> SyncState:
        if run.binding is not None:
            if run.guild_id is not None:
                await self.store.put(run.guild_id, run.channel_id, run.binding)
        else:
            await run.report_progress("Resolving server/map for this channel...")
            run.binding = await self.resolve_target(run.channel, run.guild_id)
            if run.binding is None:
                raise StateError(
                    f"No server/map could be resolved for channel {run.channel_id}",
                    "NO_BINDING",
                )
        return SyncState.CLEAR if run.clear else SyncState.FETCH

    async def _clear(self, run: SyncRun) -> SyncState:
        if run.preflight:
            me = getattr(getattr(run.channel, "guild", None), "me", None)
            ensure_channel_ready(run.channel, me)
        await run.report_progress("Clearing channel messages...")
        try:
            run.deleted = await self.clear_channel(run.channel)
        except discord.HTTPException as e:
            raise StateError(
                f"Failed to clear messages in channel {run.channel_id}: {e}", "CLEAR_FAILED"
            ) from e
        if is_thread(run.channel):
            # A populated forum post keeps its header as the starter message
            run.header_sent = await self._starter_is_header(run.channel, run.binding)
        return SyncState.FETCH

    async def _fetch(self, run: SyncRun) -> SyncState:
        binding = run.binding
        await run.report_progress(
            f"Fetching updated spots for **{binding.server}** on **{binding.map}**..."
        )
        run.records = await self.catalog.list_records(
            binding.server, binding.map, self.catalog.settings.category
        )
        if not run.records:
            self.logger.info("No spots found", extra=self._extra(run))
            return SyncState.REPORT
        return SyncState.RENDER

    async def _render(self, run: SyncRun) -> SyncState:
        run.messages = self.renderer.stream(run.records, reserved=1)
        return SyncState.EMIT

    async def _emit(self, run: SyncRun) -> SyncState:
        await run.report_progress(
            f"Found {len(run.records)} spots. Sending to the {channel_kind(run.channel)}..."
        )
        if not run.header_sent:
            await run.channel.send(content=format_dataset_header(run.binding))
            run.header_sent = True
            run.messages_sent += 1

        async for message in run.messages:
            if message.attachment is not None:
                file = discord.File(
                    io.BytesIO(message.attachment.data), filename=message.attachment.filename
                )
                await run.channel.send(content=message.text, file=file)
            else:
                await run.channel.send(content=message.text)
            run.messages_sent += 1
        return SyncState.REPORT

    async def _report(self, run: SyncRun) -> None:
        if run.persist_on_success and run.guild_id is not None and run.binding is not None:
            await self.store.put(run.guild_id, run.channel_id, run.binding)
        self.logger.info(
            f"Synced channel {run.channel_id}: deleted {run.deleted}, "
            f"sent {run.messages_sent} messages for {len(run.records)} spots",
            extra=self._extra(run),
        )

    async def _fail(self, run: SyncRun) -> None:
        self.logger.warning(
            f"Sync failed for channel {run.channel_id} in state "
            f"{run.visited[-2].value if len(run.visited) > 1 else 'start'}: {run.error}",
            extra=self._extra(run),
        )

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    async def resolve_target(self, channel: Any, guild_id: int | None) -> ChannelBinding | None:
        """
        Find the (server, map) a channel mirrors.

        Looks up the stored binding first, then scans recent history (newest
        first) for a dataset header naming a known server and map.
        """
        if guild_id is not None:
            binding = await self.store.get(guild_id, channel.id)
            if binding is not None:
                self.logger.info(
                    f"Using saved config for channel {channel.id}: {binding}",
                    extra={"channel_id": channel.id, "guild_id": guild_id},
                )
                return binding

        servers = self.catalog.settings.servers
        maps = self.catalog.settings.maps
        try:
            async for message in channel.history(limit=self.settings.history_scan_limit):
                binding = parse_dataset_header(message.content, servers, maps)
                if binding is not None:
                    self.logger.info(
                        f"Recovered {binding} from message history",
                        extra={"channel_id": channel.id, "guild_id": guild_id},
                    )
                    return binding
        except discord.HTTPException as e:
            self.logger.error(f"Error fetching messages in channel {channel.id}: {e}")
        return None

    async def _starter_is_header(self, thread: Any, binding: ChannelBinding) -> bool:
        try:
            starter = await thread.fetch_message(thread.id)
        except discord.HTTPException:
            return False
        return parse_dataset_header(starter.content, (binding.server,), (binding.map,)) == binding

    async def clear_channel(self, channel: Any) -> int:
        """
        Bulk-delete every message young enough to be bulk-deleted.

        Batches are fetched newest first. The loop ends on a short batch, or on
        a batch holding a message that can't be removed (too old, or the
        thread's starter message), since everything after it is older still.

        Returns:
            Number of messages deleted.
        """
        batch_size = self.settings.clear_batch_size
        cutoff = discord.utils.utcnow() - timedelta(days=self.settings.bulk_delete_max_age_days)
        deleted = 0
        batches = 0

        while True:
            messages = [m async for m in channel.history(limit=batch_size)]
            batches += 1
            if not messages:
                break

            deletable = [m for m in messages if m.id != channel.id and m.created_at > cutoff]
            if deletable:
                await channel.delete_messages(deletable)
                deleted += len(deletable)

            if len(messages) < batch_size or len(deletable) < len(messages):
                break
            await asyncio.sleep(self.settings.clear_delay_seconds)

        self.logger.debug(
            f"Cleared {deleted} messages from channel {channel.id} in {batches} batches"
        )
        return deleted

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def sync_here(
        self,
        channel: Any,
        guild_id: int | None,
        *,
        binding: ChannelBinding | None = None,
        progress: Progress | None = None,
    ) -> SyncRun:
        """Full pass for the invoking channel, resolving the binding if not given."""
        run = SyncRun(
            channel=channel,
            guild_id=guild_id,
            binding=binding,
            persist_on_success=binding is None,
            progress=progress,
        )
        return await self._drive(run, SyncState.RESOLVE)

    async def sync_channel(
        self,
        channel: Any,
        binding: ChannelBinding,
        *,
        guild_id: int | None = None,
        progress: Progress | None = None,
        preflight: bool = False,
    ) -> SyncRun:
        """Clear and repopulate a channel whose binding is already known."""
        run = SyncRun(
            channel=channel,
            guild_id=guild_id,
            binding=binding,
            preflight=preflight,
            progress=progress,
        )
        return await self._drive(run, SyncState.CLEAR)

    async def post_records(
        self,
        channel: Any,
        guild_id: int | None,
        binding: ChannelBinding,
        *,
        progress: Progress | None = None,
    ) -> SyncRun:
        """Save the binding and post the rendering without clearing first."""
        run = SyncRun(
            channel=channel,
            guild_id=guild_id,
            binding=binding,
            clear=False,
            progress=progress,
        )
        return await self._drive(run, SyncState.RESOLVE)

    async def sync_guild(
        self,
        guild_id: int,
        lookup: ChannelLookup,
        *,
        progress: Progress | None = None,
    ) -> FanOutSummary:
        """
        Refresh every bound channel in a guild.

        Args:
            guild_id: Guild whose bindings are refreshed.
            lookup: Resolves a channel id to a live channel, or None.
            progress: Optional progress callback.

        Returns:
            FanOutSummary with one outcome per stored binding.
        """
        bindings = await self.store.get_all(guild_id)
        summary = FanOutSummary()
        if not bindings:
            return summary

        total = len(bindings)
        for position, (raw_channel_id, binding) in enumerate(bindings.items(), start=1):
            channel_id = int(raw_channel_id)
            extra = {"guild_id": guild_id, "channel_id": channel_id}

            try:
                channel = await lookup(channel_id)
            except Exception as e:
                self.logger.warning(f"Failed to fetch saved channel {channel_id}: {e}", extra=extra)
                channel = None

            if channel is None or not is_text_or_thread(channel):
                self.logger.warning(
                    f"Saved channel {channel_id} is missing or not a text channel/thread",
                    extra=extra,
                )
                summary.outcomes.append(
                    SyncOutcome(channel_id=channel_id, success=False, error="channel unavailable")
                )
                continue

            await self._progress(progress, f"Updating {binding} ({position}/{total})...")
            run = await self.sync_channel(
                channel, binding, guild_id=guild_id, preflight=True
            )
            summary.outcomes.append(run.outcome())

            if position < total:
                await asyncio.sleep(self.settings.channel_delay_seconds)

        self.logger.info(
            f"Guild update complete: {summary.succeeded} succeeded, {summary.failed} failed",
            extra={"guild_id": guild_id},
        )
        return summary

    async def populate_forum(
        self,
        forum: Any,
        server: str,
        *,
        progress: Progress | None = None,
    ) -> PopulateSummary:
        """
        Create one forum post per map of ``server`` that has spots.

        The post's starter message is the dataset header, so it counts toward
        the message cap. Each new post is bound to its map.
        """
        summary = PopulateSummary()
        guild_id = forum.guild.id
        maps = await self.catalog.list_maps_for_server(server)
        await self._progress(progress, "Creating forum posts for all maps...")

        for map_name in maps:
            binding = ChannelBinding(server=server, map=map_name)
            extra = {"guild_id": guild_id, "channel_id": forum.id, "server": server, "map": map_name}
            try:
                records = await self.catalog.list_records(
                    server, map_name, self.catalog.settings.category
                )
                if not records:
                    continue
                summary.datasets_with_records += 1

                created = await forum.create_thread(
                    name=str(binding), content=format_dataset_header(binding).strip()
                )
                thread = created.thread
                summary.created_channel_ids.append(thread.id)

                run = SyncRun(
                    channel=thread,
                    guild_id=guild_id,
                    binding=binding,
                    header_sent=True,
                    records=records,
                    messages_sent=1,
                )
                await self._drive(run, SyncState.RENDER)
                summary.messages_sent += run.messages_sent
                if not run.success:
                    summary.failed_datasets.append(map_name)
                    continue

                await self.store.put(guild_id, thread.id, binding)
                await self._progress(progress, f"Posted **{map_name}** ({run.messages_sent} messages)")
            except Exception as e:
                self.logger.exception(
                    f"Error processing map {map_name} for server {server}", exc_info=e, extra=extra
                )
                summary.failed_datasets.append(map_name)
                continue

            await asyncio.sleep(self.settings.forum_delay_seconds)

        return summary

    @staticmethod
    async def _progress(progress: Progress | None, text: str) -> None:
        if progress is not None:
            await progress(text)
