"""
Custom exception classes for the temporary voice bot.

These provide a hierarchy of typed exceptions for the channel lifecycle.
Lost races (cancelling a countdown that already fired, deleting a channel
that is already gone) are not errors and have no exception type.
"""


class BotError(Exception):
    """Base exception for bot-related errors."""

    pass


class ConfigError(BotError):
    """Exception raised for configuration-related errors."""

    pass


class PermissionDenied(BotError):
    """The bot lacks the Manage Channels capability in a guild."""

    pass


class PlatformRequestFailed(BotError):
    """A REST call to the chat platform failed."""

    def __init__(self, operation: str, detail: object = None) -> None:
        self.operation = operation
        self.detail = detail
        message = operation if detail is None else f"{operation}: {detail}"
        super().__init__(message)


class ResolutionFailed(BotError):
    """A guild, member, or channel lookup returned nothing."""

    pass
