"""
Exactly-once response handling for slash commands and autocomplete.

Discord accepts a single initial response per interaction. Everything in this
module checks ``interaction.response.is_done()`` first and degrades to an
edit or a logged no-op instead of raising ``InteractionResponded``.

All helpers log failures and return a bool; none of them raise, so they are
safe to call from inside error handlers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

import discord

from constants import MAX_AUTOCOMPLETE_CHOICES
from helpers.error_messages import format_user_error
from utils.errors import PermissionDeniedError, StateError, UpstreamError
from utils.logging import get_logger

if TYPE_CHECKING:
    from discord import Interaction
    from discord.app_commands import Choice

logger = get_logger(__name__)


def _log_extra(interaction: Interaction) -> dict:
    command = getattr(interaction, "command", None)
    return {
        "user_id": getattr(interaction.user, "id", None),
        "guild_id": interaction.guild_id,
        "channel_id": interaction.channel_id,
        "command_name": getattr(command, "name", None),
    }


async def acknowledge(
    interaction: Interaction, timeout: float = 2.0, *, ephemeral: bool = True
) -> bool:
    """
    Defer the interaction within ``timeout`` seconds.

    Returns:
        True if this call acknowledged the interaction. False when it was
        already acknowledged, expired, or the defer timed out; the caller may
        still try to proceed.
    """
    if interaction.response.is_done():
        logger.warning("Interaction already acknowledged, skipping defer", extra=_log_extra(interaction))
        return False
    try:
        await asyncio.wait_for(
            interaction.response.defer(ephemeral=ephemeral, thinking=True), timeout
        )
        return True
    except asyncio.TimeoutError:
        logger.warning(
            f"Deferring reply took longer than {timeout}s, interaction may have expired",
            extra=_log_extra(interaction),
        )
    except discord.InteractionResponded:
        logger.warning("Interaction was acknowledged concurrently", extra=_log_extra(interaction))
    except discord.NotFound:
        logger.warning("Interaction expired before it could be acknowledged", extra=_log_extra(interaction))
    except discord.HTTPException as e:
        logger.warning(f"Failed to defer reply: {e}", extra=_log_extra(interaction))
    return False


async def safe_edit_reply(interaction: Interaction, content: str) -> bool:
    """Edit the deferred reply. No-op (False) if nothing was sent yet."""
    if not interaction.response.is_done():
        return False
    try:
        await interaction.edit_original_response(content=content)
        return True
    except discord.HTTPException as e:
        logger.warning(f"Failed to edit reply: {e}", extra=_log_extra(interaction))
        return False


async def send_user_error(interaction: Interaction, text: str, ephemeral: bool = True) -> bool:
    """
    Send an ephemeral error as the initial response, or as a followup when the
    interaction was already answered.
    """
    if not text.startswith("❌"):
        text = f"❌ {text}"
    try:
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(text, ephemeral=ephemeral)
        return True
    except discord.HTTPException as e:
        logger.warning(f"Failed to send error message to user: {e}", extra=_log_extra(interaction))
        return False


async def report_failure(interaction: Interaction, content: str) -> bool:
    """
    Show ``content`` to the user however the interaction currently allows.

    Edits the deferred reply when one exists, otherwise sends a fresh ephemeral
    reply. Failures while reporting are logged and swallowed.
    """
    try:
        if interaction.response.is_done():
            await interaction.edit_original_response(content=content)
        else:
            await interaction.response.send_message(content, ephemeral=True)
        return True
    except Exception as e:
        logger.warning(f"Failed to report error to user: {e}", extra=_log_extra(interaction))
        return False


async def respond_autocomplete_once(
    interaction: Interaction, choices: Sequence[Choice[str]]
) -> bool:
    """Answer an autocomplete request unless it was already answered."""
    if interaction.response.is_done():
        logger.debug("Autocomplete already answered, ignoring", extra=_log_extra(interaction))
        return False
    try:
        await interaction.response.autocomplete(list(choices)[:MAX_AUTOCOMPLETE_CHOICES])
        return True
    except (discord.InteractionResponded, discord.NotFound):
        logger.debug("Autocomplete interaction no longer answerable", extra=_log_extra(interaction))
        return False
    except discord.HTTPException as e:
        logger.warning(f"Failed to send autocomplete choices: {e}", extra=_log_extra(interaction))
        return False


def describe_error(error: BaseException, kind: str = "channel") -> str:
    """Map an exception to the single message shown to the user."""
    if isinstance(error, PermissionDeniedError):
        if not error.missing:
            return format_user_error("BOT_MEMBER_UNKNOWN")
        return format_user_error(
            "MISSING_PERMISSIONS", permissions=", ".join(error.missing), kind=kind
        )
    if isinstance(error, StateError):
        return format_user_error(error.code)
    if isinstance(error, UpstreamError):
        return format_user_error("UPSTREAM")
    return format_user_error("UNKNOWN")
