"""
Structured log formatter tests.
"""

import json
import logging

from utils.logging import CustomJsonFormatter, _error_log_namer


def make_record(**extra):
    record = logging.LogRecord(
        name="services.channel_sync",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg="Sync failed for channel %s",
        args=(100,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCustomJsonFormatter:
    def test_base_fields(self):
        payload = json.loads(CustomJsonFormatter().format(make_record()))

        assert payload["level"] == "WARNING"
        assert payload["module"] == "services.channel_sync"
        assert payload["message"] == "Sync failed for channel 100"
        assert "guild_id" not in payload

    def test_context_extras(self):
        record = make_record(guild_id=1, channel_id=100, server="INX", map="The Island")

        payload = json.loads(CustomJsonFormatter().format(record))

        assert payload["guild_id"] == 1
        assert payload["channel_id"] == 100
        assert payload["server"] == "INX"
        assert payload["map"] == "The Island"


def test_error_log_namer():
    assert _error_log_namer("/logs/errors/errors.jsonl.2024-05-01").endswith(
        "errors_2024-05-01.jsonl"
    )
