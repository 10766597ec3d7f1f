"""
Webhook relay: posts a message to a Discord webhook URL.

Failures never raise; they are returned in a WebhookSendResult so commands can
show the reason without a catch-all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from helpers.http_helper import HTTPError
from services.base import BaseService

if TYPE_CHECKING:
    from helpers.http_helper import HTTPClient

WEBHOOK_URL_MARKER = "discord.com/api/webhooks/"


@dataclass(frozen=True)
class WebhookSendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


def is_webhook_url(url: str) -> bool:
    return WEBHOOK_URL_MARKER in (url or "")


class WebhookService(BaseService):
    """Sends messages through incoming webhooks."""

    def __init__(self, http_client: HTTPClient) -> None:
        super().__init__("webhook")
        self.http_client = http_client

    async def _initialize_impl(self) -> None:
        pass

    async def send_webhook_message(
        self,
        webhook_url: str,
        content: str,
        *,
        username: str | None = None,
        avatar_url: str | None = None,
    ) -> WebhookSendResult:
        """
        POST a message to ``webhook_url`` and wait for Discord to store it.

        Returns:
            WebhookSendResult with the created message id on success, or the
            failure reason.
        """
        if not is_webhook_url(webhook_url):
            return WebhookSendResult(success=False, error="Invalid webhook URL format")

        payload: dict[str, Any] = {"content": content}
        if username:
            payload["username"] = username
        if avatar_url:
            payload["avatar_url"] = avatar_url

        try:
            response = await self.http_client.post_json(
                webhook_url, payload, params={"wait": "true"}
            )
        except HTTPError as e:
            self.logger.error(f"Webhook send failed: {e}")
            reason = f"HTTP {e.status}" if e.status else str(e)
            return WebhookSendResult(success=False, error=reason)

        message_id: str | None = None
        try:
            data = response.json()
            if isinstance(data, dict) and data.get("id") is not None:
                message_id = str(data["id"])
        except ValueError:
            self.logger.warning("Webhook response was not JSON")

        self.logger.info(f"Webhook message sent successfully: {message_id}")
        return WebhookSendResult(success=True, message_id=message_id)
