"""
Test Factories Module

Centralized factory functions and fixtures for creating test objects.
Provides DRY utilities for Discord mocks, catalog records and config fixtures.
"""

from .config_factories import (
    make_config,
    make_invalid_config,
    temp_config_file,
)
from .discord_factories import (
    FakeBot,
    FakeForum,
    FakeGuild,
    FakeInteraction,
    FakeMessage,
    FakeTextChannel,
    FakeThread,
    FakeUser,
    make_guild,
    make_interaction,
    make_permissions,
    make_text_channel,
    make_thread,
)
from .spot_factories import FakeCatalog, FakeHTTPClient, make_record

__all__ = [
    "FakeBot",
    "FakeCatalog",
    "FakeForum",
    "FakeGuild",
    "FakeHTTPClient",
    "FakeInteraction",
    "FakeMessage",
    "FakeTextChannel",
    "FakeThread",
    "FakeUser",
    "make_config",
    "make_guild",
    "make_interaction",
    "make_invalid_config",
    "make_permissions",
    "make_record",
    "make_text_channel",
    "make_thread",
    "temp_config_file",
]
