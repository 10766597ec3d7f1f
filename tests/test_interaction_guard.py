"""
Interaction guard tests: every interaction gets at most one initial response.
"""

import asyncio

import pytest
from discord import app_commands

from helpers.interaction_guard import (
    acknowledge,
    describe_error,
    report_failure,
    respond_autocomplete_once,
    safe_edit_reply,
    send_user_error,
)
from tests.factories import FakeInteraction
from utils.errors import PermissionDeniedError, StateError, UpstreamError


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_defers_once(self):
        interaction = FakeInteraction()

        assert await acknowledge(interaction) is True
        assert interaction.response._deferred is True
        assert await acknowledge(interaction) is False

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self):
        interaction = FakeInteraction()

        async def slow_defer(**kwargs):
            await asyncio.sleep(1)

        interaction.response.defer = slow_defer

        assert await acknowledge(interaction, timeout=0.01) is False


class TestEditAndReport:
    @pytest.mark.asyncio
    async def test_edit_requires_prior_ack(self):
        interaction = FakeInteraction()

        assert await safe_edit_reply(interaction, "progress") is False
        await acknowledge(interaction)
        assert await safe_edit_reply(interaction, "progress") is True
        assert interaction.last_edit == "progress"

    @pytest.mark.asyncio
    async def test_report_failure_sends_when_unanswered(self):
        interaction = FakeInteraction()

        await report_failure(interaction, "❌ broke")

        assert interaction.response._messages == [{"content": "❌ broke", "ephemeral": True}]
        assert interaction._edits == []

    @pytest.mark.asyncio
    async def test_report_failure_edits_after_defer(self):
        interaction = FakeInteraction()
        await acknowledge(interaction)

        await report_failure(interaction, "❌ broke")

        assert interaction.response._messages == []
        assert interaction.last_edit == "❌ broke"

    @pytest.mark.asyncio
    async def test_report_failure_never_raises(self):
        interaction = FakeInteraction()

        async def exploding_edit(**kwargs):
            raise RuntimeError("edit failed")

        await acknowledge(interaction)
        interaction.edit_original_response = exploding_edit

        assert await report_failure(interaction, "x") is False

    @pytest.mark.asyncio
    async def test_send_user_error_uses_followup_after_response(self):
        interaction = FakeInteraction()
        await send_user_error(interaction, "first")
        await send_user_error(interaction, "second")

        assert interaction.response._messages[0]["content"] == "❌ first"
        assert interaction.followup._messages[0]["content"] == "❌ second"


class TestAutocomplete:
    @pytest.mark.asyncio
    async def test_answers_only_once(self):
        interaction = FakeInteraction()
        choices = [app_commands.Choice(name="The Island", value="The Island")]

        assert await respond_autocomplete_once(interaction, choices) is True
        assert await respond_autocomplete_once(interaction, choices) is False
        assert len(interaction.response._autocomplete_calls) == 1

    @pytest.mark.asyncio
    async def test_caps_choices(self):
        interaction = FakeInteraction()
        choices = [app_commands.Choice(name=str(i), value=str(i)) for i in range(40)]

        await respond_autocomplete_once(interaction, choices)

        assert len(interaction.response._autocomplete_calls[0]) == 25


class TestDescribeError:
    def test_missing_permissions(self):
        message = describe_error(
            PermissionDeniedError("x", missing=["Send Messages", "Manage Messages"]), "thread"
        )
        assert "Send Messages, Manage Messages" in message
        assert "thread" in message

    def test_unknown_member(self):
        assert "verify permissions" in describe_error(PermissionDeniedError("x"))

    def test_state_error_uses_code(self):
        assert "archived" in describe_error(StateError("x", "THREAD_ARCHIVED")).lower()

    def test_upstream(self):
        assert "Catalog unavailable" in describe_error(UpstreamError("x", 500))

    def test_anything_else(self):
        assert "Something went wrong" in describe_error(ValueError("boom"))
