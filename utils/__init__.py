"""
Utilities Package

Common utilities and helper functions for the Discord bot.
"""

from .errors import (
    BotError,
    ConfigurationError,
    PermissionDeniedError,
    StateError,
    UpstreamError,
)
from .logging import get_logger, setup_logging
from .types import (
    ChannelBinding,
    FanOutSummary,
    PointRecord,
    RenderedMessage,
    SyncOutcome,
)

__all__ = [
    "BotError",
    "ChannelBinding",
    "ConfigurationError",
    "FanOutSummary",
    "PermissionDeniedError",
    "PointRecord",
    "RenderedMessage",
    "StateError",
    "SyncOutcome",
    "UpstreamError",
    "get_logger",
    "setup_logging",
]
