"""
Custom exception classes for the Discord bot.

These provide a hierarchy of typed exceptions for better error handling.
"""


class BotError(Exception):
    """Base exception for bot-related errors."""

    pass


class ConfigurationError(BotError):
    """Required configuration (token, ids) is missing or invalid at startup."""

    pass


class UpstreamError(BotError):
    """A catalog or transport call failed; reported as a generic failure."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class PermissionDeniedError(BotError):
    """The caller or the bot lacks a capability required for the request."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class StateError(BotError):
    """Target channel is archived, locked, unsupported, or has no binding.

    ``code`` is the user-facing message code from helpers.error_messages.
    """

    def __init__(self, message: str, code: str = "UNKNOWN") -> None:
        super().__init__(message)
        self.code = code
