"""
Spot rendering: turns catalog records into the ordered chat messages for one map.

Output layout for a map (the caller sends the dataset header first):

    __***# {server} - {map}***__
    # *————— {type} —————*
    ## ** 1. {name}**  (body, separator appended unless an external video link previews)
    ...
    ... and N more spots.  (only when the message cap is hit)
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from constants import MESSAGE_SEPARATOR, UNKNOWN_TYPE, UNNAMED_SPOT
from helpers.http_helper import HTTPError
from utils.logging import get_logger
from utils.types import (
    AttachmentResult,
    ChannelBinding,
    PointRecord,
    RenderedAttachment,
    RenderedMessage,
)

if TYPE_CHECKING:
    from helpers.http_helper import HTTPClient

logger = get_logger(__name__)

DEFAULT_MAX_MESSAGES = 50
ATTACHMENT_FAILED_TEXT = "[Failed to attach video file]"

_HEADER_PATTERN = re.compile(r"__\*\*\*#\s*([^-]+)\s*-\s*([^*]+)\*\*\*__")
_VIDEO_FILE_PATTERN = re.compile(r"\.(mp4|webm|mov)$", re.IGNORECASE)
_PUBLIC_STORAGE_PATH = re.compile(r"/storage/v1/object/public/", re.IGNORECASE)
_GENERIC_PUBLIC_STORAGE = re.compile(
    r"supabase\.(co|in)/storage/v1/object/public/", re.IGNORECASE
)


# ---------------------------------------------------------------------------
# Text formatting
# ---------------------------------------------------------------------------


def format_dataset_header(binding: ChannelBinding) -> str:
    return f"__***# {binding.server} - {binding.map}***__\n"


def format_category_header(spot_type: str) -> str:
    return f"# *————— {spot_type or UNKNOWN_TYPE} —————*\n"


def format_footer(omitted: int) -> str:
    return (
        f"... and {omitted} more spots. Use the command again with more "
        "specific parameters to see all spots."
    )


def show_cave_damage(damage: str | None) -> bool:
    """Damage lines are hidden for empty values and the literal 'nothing'."""
    text = (damage or "").strip()
    return bool(text) and text.lower() != "nothing"


def format_spot_text(record: PointRecord, index: int) -> str:
    """Body text for one spot; ``index`` is zero-based within its category."""
    lines = [
        f"## ** {index + 1}. {record.name or UNNAMED_SPOT}**",
        f"- Coords: {record.y}, {record.x}",
    ]
    if show_cave_damage(record.cave_damage):
        lines.append(f"- Cave Damage: {record.cave_damage.strip()}")
    if record.description:
        lines.append(f"\nDescription:\n```\n{record.description}\n```\n")
    if record.video_url:
        lines.append(f"Video:\n {record.video_url}\n")
    return "\n".join(lines)


def parse_dataset_header(
    text: str, servers: Iterable[str], maps: Iterable[str]
) -> ChannelBinding | None:
    """
    Recover the (server, map) pair from a previously posted dataset header.

    Returns None when the text has no header or names an unknown server/map.
    """
    match = _HEADER_PATTERN.search(text or "")
    if not match:
        return None
    server = match.group(1).strip()
    map_name = match.group(2).strip()
    if server in servers and map_name in maps:
        return ChannelBinding(server=server, map=map_name)
    return None


def is_video_file(url: str | None) -> bool:
    return bool(url) and bool(_VIDEO_FILE_PATTERN.search(url))


def is_public_storage_url(url: str, storage_base_url: str | None = None) -> bool:
    """True when ``url`` points at our own public media storage."""
    if storage_base_url:
        host = urlparse(storage_base_url).hostname
        if host:
            return host in url and bool(_PUBLIC_STORAGE_PATH.search(url))
    return bool(_GENERIC_PUBLIC_STORAGE.search(url))


def sort_records(records: Iterable[PointRecord]) -> list[PointRecord]:
    """Low priority types last, then by type and name. Stable for equal keys."""
    return sorted(records, key=lambda r: r.sort_key)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class SpotRenderer:
    """
    Renders a map's spots into a bounded sequence of messages.

    Video files are downloaded lazily while streaming, so at most one is
    held in memory at a time.
    """

    def __init__(
        self,
        http_client: HTTPClient | None = None,
        *,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        public_storage_url: str | None = None,
    ) -> None:
        self.http_client = http_client
        self.max_messages = max_messages
        self.public_storage_url = public_storage_url

    async def fetch_attachment(self, url: str) -> AttachmentResult:
        """Download a video file. Failures are returned, never raised."""
        if self.http_client is None:
            return AttachmentResult(ok=False, error="no HTTP client configured")
        filename = url.split("?", 1)[0].rstrip("/").split("/")[-1] or "video.mp4"
        try:
            data = await self.http_client.get_bytes(url, retry=False)
        except HTTPError as e:
            logger.warning(f"Failed to attach video file {url}: {e}")
            return AttachmentResult(ok=False, filename=filename, error=str(e))
        return AttachmentResult(ok=True, filename=filename, data=data)

    def _has_external_video_link(self, record: PointRecord) -> bool:
        return bool(record.video_url) and not is_public_storage_url(
            record.video_url, self.public_storage_url
        )

    async def stream(
        self, records: Sequence[PointRecord], *, reserved: int = 1
    ) -> AsyncIterator[RenderedMessage]:
        """
        Yield the messages for ``records`` in emission order.

        Args:
            records: Spots in any order; they are sorted here.
            reserved: Messages already spent by the caller against the cap
                (the dataset header).
        """
        ordered = sort_records(records)
        count = reserved
        last_type: str | None = None
        index = 0

        for position, record in enumerate(ordered):
            new_category = record.type != last_type
            attachable = is_video_file(record.video_file)
            cost = (1 if new_category else 0) + (2 if attachable else 1)
            if count + cost > self.max_messages:
                yield RenderedMessage(text=format_footer(len(ordered) - position))
                return

            if new_category:
                yield RenderedMessage(text=format_category_header(record.type))
                count += 1
                last_type = record.type
                index = 0

            body = format_spot_text(record, index)
            if attachable:
                result = await self.fetch_attachment(record.video_file)
                if result.ok:
                    yield RenderedMessage(
                        text=body,
                        attachment=RenderedAttachment(result.filename, result.data),
                    )
                    yield RenderedMessage(text=MESSAGE_SEPARATOR)
                    count += 2
                else:
                    yield RenderedMessage(
                        text=f"{body}\n{ATTACHMENT_FAILED_TEXT}\n{MESSAGE_SEPARATOR}"
                    )
                    count += 1
            elif self._has_external_video_link(record):
                yield RenderedMessage(text=body)
                count += 1
            else:
                yield RenderedMessage(text=f"{body}\n{MESSAGE_SEPARATOR}")
                count += 1
            index += 1

    async def render(
        self, records: Sequence[PointRecord], *, reserved: int = 1
    ) -> list[RenderedMessage]:
        return [message async for message in self.stream(records, reserved=reserved)]
