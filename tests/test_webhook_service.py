"""
Webhook relay tests.
"""

import pytest

from helpers.http_helper import PermanentError
from services.webhook_service import WebhookService, is_webhook_url
from tests.factories import FakeHTTPClient

HOOK = "https://discord.com/api/webhooks/1/token"


class TestWebhookService:
    def test_url_check(self):
        assert is_webhook_url(HOOK)
        assert not is_webhook_url("https://example.com/hook")
        assert not is_webhook_url("")

    @pytest.mark.asyncio
    async def test_rejects_non_webhook_url(self):
        http = FakeHTTPClient()
        result = await WebhookService(http).send_webhook_message("https://example.com", "hi")

        assert result.success is False
        assert result.error == "Invalid webhook URL format"
        assert http.calls == []

    @pytest.mark.asyncio
    async def test_sends_and_returns_message_id(self):
        http = FakeHTTPClient({HOOK: {"id": 12345}})
        service = WebhookService(http)

        result = await service.send_webhook_message(
            HOOK, "hello", username="Relay", avatar_url="https://x/a.png"
        )

        assert result.success is True
        assert result.message_id == "12345"
        call = http.calls[0]
        assert call["params"] == {"wait": "true"}
        assert call["payload"] == {
            "content": "hello",
            "username": "Relay",
            "avatar_url": "https://x/a.png",
        }

    @pytest.mark.asyncio
    async def test_http_error_reported(self):
        http = FakeHTTPClient({HOOK: PermanentError("bad request", 400)})

        result = await WebhookService(http).send_webhook_message(HOOK, "hello")

        assert result.success is False
        assert result.error == "HTTP 400"

    @pytest.mark.asyncio
    async def test_non_json_response_still_succeeds(self):
        http = FakeHTTPClient({HOOK: b"not json"})

        result = await WebhookService(http).send_webhook_message(HOOK, "hello")

        assert result.success is True
        assert result.message_id is None

    @pytest.mark.asyncio
    async def test_payload_carries_only_given_fields(self):
        http = FakeHTTPClient({HOOK: {"id": 7}})

        await WebhookService(http).send_webhook_message(HOOK, "plain")

        assert http.calls[0]["payload"] == {"content": "plain"}
