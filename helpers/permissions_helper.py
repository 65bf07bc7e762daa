"""Capability check consulted before the bot mutates channels in a guild."""

from typing import Any

from utils.errors import PermissionDenied, PlatformRequestFailed, ResolutionFailed
from utils.logging import get_logger
from utils.types import VoicePlatform

logger = get_logger(__name__)


async def has_manage_capability(platform: VoicePlatform, guild: Any) -> bool:
    """
    Return True if the bot holds Manage Channels in ``guild``.

    Any resolution failure (bot member not found, guild not cached,
    permission data unavailable) yields False. Callers treat False exactly
    like an explicit denial and do not retry.
    """
    if guild is None:
        return False

    try:
        bot_member = await platform.resolve_member(guild, platform.current_agent_id())
    except (ResolutionFailed, PlatformRequestFailed) as e:
        logger.warning(
            "Could not resolve bot member in guild %s: %s", getattr(guild, "id", None), e
        )
        return False

    perms = getattr(bot_member, "guild_permissions", None)
    return bool(getattr(perms, "manage_channels", False))


async def ensure_manage_capability(platform: VoicePlatform, guild: Any) -> None:
    """Raise PermissionDenied unless the bot can manage channels in ``guild``."""
    if not await has_manage_capability(platform, guild):
        raise PermissionDenied(
            f"Bot is missing the Manage Channels permission in guild {getattr(guild, 'id', None)}"
        )
