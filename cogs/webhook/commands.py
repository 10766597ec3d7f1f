"""Webhook commands: /webhook creates one, /send relays a message through one."""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from helpers.channel_checks import (
    WEBHOOK_PERMISSIONS,
    channel_kind,
    ensure_channel_ready,
    is_text_or_thread,
    is_thread,
)
from helpers.decorators import guarded_command, require_administrator
from helpers.error_messages import format_user_error, format_user_success
from helpers.interaction_guard import (
    acknowledge,
    describe_error,
    report_failure,
    safe_edit_reply,
)
from utils.errors import PermissionDeniedError, StateError
from utils.logging import get_logger

if TYPE_CHECKING:
    from bot import MyBot

logger = get_logger(__name__)


def build_webhook_created_message(
    url: str, name: str, channel_name: str, kind: str, via_parent: bool, creator: str
) -> str:
    parent_note = " (webhook will post to parent channel, not this thread)" if via_parent else ""
    return (
        "✅ **Webhook created successfully!**\n\n"
        f"**Webhook URL:**\n```\n{url}\n```\n"
        "**Usage Instructions:**\n"
        f"• Use this URL to send messages to this {kind} from external applications\n"
        '• Send a POST request to the URL with JSON body: `{"content": "Your message here"}`\n'
        f'• The webhook will appear as "{name}" when sending messages\n'
        f"• Keep this URL private - anyone with it can send messages to this {kind}\n\n"
        f"**Channel:** {channel_name}{parent_note}\n"
        f"**Created by:** {creator}"
    )


class WebhookCog(commands.Cog):
    """Create and use incoming webhooks."""

    def __init__(self, bot: MyBot) -> None:
        self.bot = bot

    @app_commands.command(name="webhook", description="Create a webhook for this channel")
    @app_commands.describe(name="Custom name for the webhook (defaults to the bot's name)")
    @app_commands.guild_only()
    @require_administrator()
    @guarded_command
    async def webhook(self, interaction: discord.Interaction, name: str | None = None) -> None:
        """Create a webhook on this channel (the parent channel when used in a thread)."""
        await acknowledge(interaction, self.bot.services.sync_settings.defer_timeout_seconds)

        channel = interaction.channel
        in_thread = is_thread(channel)
        target = channel.parent if in_thread else channel
        me = interaction.guild.me if interaction.guild else None
        try:
            if not is_text_or_thread(channel) or target is None:
                raise StateError("Webhooks need a text channel or thread", "NOT_TEXT_CHANNEL")
            ensure_channel_ready(target, me, WEBHOOK_PERMISSIONS)
            if in_thread:
                ensure_channel_ready(channel, me, (("send_messages", "Send Messages"),))
        except (PermissionDeniedError, StateError) as e:
            await report_failure(interaction, describe_error(e, channel_kind(channel)))
            return

        bot_user = self.bot.user
        webhook_name = name or (bot_user.name if bot_user else None) or "Bot Webhook"
        await safe_edit_reply(interaction, "Creating webhook...")
        try:
            created = await target.create_webhook(
                name=webhook_name,
                reason=f"Webhook created by {interaction.user} via /webhook command",
            )
        except discord.HTTPException as e:
            logger.error(
                f"Error creating webhook: {e}",
                extra={"guild_id": interaction.guild_id, "channel_id": target.id},
            )
            await report_failure(interaction, format_user_error("WEBHOOK_CREATE_FAILED"))
            return

        logger.info(
            f"Webhook created successfully: {webhook_name} (ID: {created.id})",
            extra={"guild_id": interaction.guild_id, "channel_id": target.id},
        )
        await safe_edit_reply(
            interaction,
            build_webhook_created_message(
                created.url,
                webhook_name,
                getattr(target, "name", None) or "unnamed",
                channel_kind(channel),
                in_thread,
                str(interaction.user),
            ),
        )

    @app_commands.command(name="send", description="Send a message using a webhook URL")
    @app_commands.describe(
        webhook_url="The webhook URL to send the message to",
        message="The message content to send",
        username="Custom username for the webhook message",
        avatar_url="Custom avatar URL for the webhook message",
    )
    @app_commands.guild_only()
    @require_administrator()
    @guarded_command
    async def send(
        self,
        interaction: discord.Interaction,
        webhook_url: str,
        message: str,
        username: str | None = None,
        avatar_url: str | None = None,
    ) -> None:
        """Relay a message through a webhook."""
        await acknowledge(interaction, self.bot.services.sync_settings.defer_timeout_seconds)
        await safe_edit_reply(interaction, "Sending webhook message...")

        result = await self.bot.services.webhook.send_webhook_message(
            webhook_url, message, username=username, avatar_url=avatar_url
        )
        if result.success:
            logger.info(
                f"Webhook message sent by {interaction.user.id}: {result.message_id}",
                extra={"guild_id": interaction.guild_id},
            )
            await safe_edit_reply(
                interaction,
                format_user_success("WEBHOOK_SENT", message_id=result.message_id or "Unknown"),
            )
        else:
            logger.warning(
                f"Webhook send failed for {interaction.user.id}: {result.error}",
                extra={"guild_id": interaction.guild_id},
            )
            await report_failure(
                interaction, format_user_error("WEBHOOK_FAILED", error=result.error or "Unknown error")
            )


async def setup(bot: commands.Bot) -> None:
    """Register the webhook cog."""

    await bot.add_cog(WebhookCog(bot))
