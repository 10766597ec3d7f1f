"""Reusable guards for Discord app commands."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TypeVar

import discord

from helpers.error_messages import format_user_error
from helpers.interaction_guard import describe_error, report_failure, send_user_error

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable])


def _is_administrator(interaction: discord.Interaction) -> bool:
    permissions = getattr(interaction, "permissions", None)
    return bool(permissions and getattr(permissions, "administrator", False))


def require_administrator() -> Callable[[F], F]:
    """Decorator that limits a command to members with the Administrator permission.

    Denied callers get exactly one ephemeral message and the command body never
    runs.

    Example:
        @app_commands.command()
        @require_administrator()
        async def my_command(self, interaction: discord.Interaction):
            ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(self, interaction: discord.Interaction, *args, **kwargs):
            if interaction.guild is None:
                logger.warning(
                    "Permission check failed for %s: interaction without guild",
                    func.__qualname__,
                )
                await send_user_error(interaction, format_user_error("GUILD_ONLY"))
                return None

            if not _is_administrator(interaction):
                logger.warning(
                    "Permission denied for %s: user_id=%s guild_id=%s",
                    func.__qualname__,
                    interaction.user.id,
                    interaction.guild.id,
                )
                await send_user_error(interaction, format_user_error("PERMISSION"))
                return None

            return await func(self, interaction, *args, **kwargs)

        return wrapper  # type: ignore[misc]

    return decorator


def guarded_command(func: F) -> F:
    """Catch-all boundary: any error escaping the command becomes one user message."""

    @wraps(func)
    async def wrapper(self, interaction: discord.Interaction, *args, **kwargs):
        try:
            return await func(self, interaction, *args, **kwargs)
        except Exception as e:
            logger.exception(
                "Error executing %s",
                func.__qualname__,
                exc_info=e,
                extra={"guild_id": interaction.guild_id, "channel_id": interaction.channel_id},
            )
            await report_failure(interaction, describe_error(e))
            return None

    return wrapper  # type: ignore[misc]
