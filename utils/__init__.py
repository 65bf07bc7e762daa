"""
Utilities Package

Common utilities shared by the voice lifecycle services.

Logging and task helpers are imported from their modules directly
(``utils.logging``, ``utils.tasks``) because they depend on the config
package, which itself depends on ``utils.errors``.
"""

from .errors import (
    BotError,
    ConfigError,
    PermissionDenied,
    PlatformRequestFailed,
    ResolutionFailed,
)
from .types import ChannelId, GuildId, UserId, VoiceNotification, VoicePlatform

__all__ = [
    "BotError",
    "ChannelId",
    "ConfigError",
    "GuildId",
    "PermissionDenied",
    "PlatformRequestFailed",
    "ResolutionFailed",
    "UserId",
    "VoiceNotification",
    "VoicePlatform",
]
