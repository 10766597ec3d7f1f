"""
Pre-flight checks on the channel a command targets.

Each check raises before any side effect so a command either runs against a
usable channel or stops with an actionable message.
"""

from __future__ import annotations

from typing import Any

import discord

from utils.errors import PermissionDeniedError, StateError
from utils.logging import get_logger

logger = get_logger(__name__)

TEXT_CHANNEL_TYPES = frozenset({discord.ChannelType.text, discord.ChannelType.news})
THREAD_CHANNEL_TYPES = frozenset(
    {
        discord.ChannelType.public_thread,
        discord.ChannelType.private_thread,
        discord.ChannelType.news_thread,
    }
)

# (Permissions attribute, label shown to users)
SYNC_PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("send_messages", "Send Messages"),
    ("manage_messages", "Manage Messages"),
    ("read_message_history", "Read Message History"),
)
POST_PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("send_messages", "Send Messages"),
    ("read_message_history", "Read Message History"),
)
FORUM_PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("create_public_threads", "Create Public Threads"),
    ("send_messages", "Send Messages"),
    ("read_message_history", "Read Message History"),
)
WEBHOOK_PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("manage_webhooks", "Manage Webhooks"),
    ("send_messages", "Send Messages"),
    ("read_message_history", "Read Message History"),
)


def is_thread(channel: Any) -> bool:
    return getattr(channel, "type", None) in THREAD_CHANNEL_TYPES


def is_text_or_thread(channel: Any) -> bool:
    kind = getattr(channel, "type", None)
    return kind in TEXT_CHANNEL_TYPES or kind in THREAD_CHANNEL_TYPES


def is_forum(channel: Any) -> bool:
    return getattr(channel, "type", None) == discord.ChannelType.forum


def channel_kind(channel: Any) -> str:
    """Noun used in user-facing messages."""
    if is_thread(channel):
        return "thread"
    if is_forum(channel):
        return "forum"
    return "channel"


def missing_permissions(
    channel: Any, member: Any, required: tuple[tuple[str, str], ...]
) -> list[str]:
    """Labels of the ``required`` permissions ``member`` lacks in ``channel``."""
    permissions = channel.permissions_for(member)
    return [label for attr, label in required if not getattr(permissions, attr, False)]


def ensure_channel_ready(
    channel: Any,
    me: Any,
    required: tuple[tuple[str, str], ...] = SYNC_PERMISSIONS,
    *,
    allow_forum: bool = False,
) -> None:
    """
    Verify the bot can work in ``channel``.

    Args:
        channel: Target channel, thread or forum.
        me: The bot's own guild member.
        required: Permission pairs to check.
        allow_forum: Accept forum channels instead of text channels/threads.

    Raises:
        StateError: Unsupported channel kind, archived or locked thread.
        PermissionDeniedError: The bot is missing permissions; ``missing``
            lists their labels.
    """
    if allow_forum:
        if not is_forum(channel):
            raise StateError(f"Channel {getattr(channel, 'id', None)} is not a forum", "FORUM_NOT_FOUND")
    elif not is_text_or_thread(channel):
        raise StateError(
            f"Unsupported channel type {getattr(channel, 'type', None)}", "NOT_TEXT_CHANNEL"
        )

    if me is None:
        raise PermissionDeniedError("Unable to resolve the bot's guild member")

    missing = missing_permissions(channel, me, required)
    if missing:
        logger.info(
            f"Missing permissions in channel {channel.id}: {', '.join(missing)}",
            extra={"channel_id": channel.id},
        )
        raise PermissionDeniedError(
            f"Missing permissions in {channel_kind(channel)}: {', '.join(missing)}",
            missing=missing,
        )

    if is_thread(channel):
        if getattr(channel, "archived", False):
            raise StateError(f"Thread {channel.id} is archived", "THREAD_ARCHIVED")
        if getattr(channel, "locked", False):
            raise StateError(f"Thread {channel.id} is locked", "THREAD_LOCKED")
