"""
Gateway listeners for temporary voice channels.

The cog holds no state: each event is flattened and handed to the voice
service, which decides what to do with it.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from utils.log_context import log_extra
from utils.logging import get_logger
from utils.types import VoiceNotification

if TYPE_CHECKING:
    from services.voice_service import TempVoiceService

logger = get_logger(__name__)

_VOICE_CHANNEL_TYPES = (discord.VoiceChannel, discord.StageChannel)


def _channel_id(state: discord.VoiceState) -> int | None:
    return state.channel.id if state.channel else None


def to_notification(
    member: discord.Member,
    before: discord.VoiceState,
    after: discord.VoiceState,
) -> VoiceNotification:
    """Flatten a discord.py voice state update into a VoiceNotification."""
    guild = getattr(member, "guild", None)
    return VoiceNotification(
        user_id=member.id,
        guild_id=getattr(guild, "id", None),
        previous_channel_id=_channel_id(before),
        new_channel_id=_channel_id(after),
        user_name=getattr(member, "name", None),
    )


class VoiceEvents(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @property
    def voice_service(self) -> "TempVoiceService":
        container = getattr(self.bot, "services", None)
        if container is None:
            raise RuntimeError("Voice events received before the service container was built")
        return container.voice

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        notification = to_notification(member, before, after)
        try:
            await self.voice_service.handle_voice_state_change(notification)
        except Exception:
            logger.exception(
                "Voice state update from %s -> %s could not be handled",
                notification.previous_channel_id,
                notification.new_channel_id,
                extra=log_extra(guild_id=notification.guild_id, user_id=notification.user_id),
            )

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if not isinstance(channel, _VOICE_CHANNEL_TYPES):
            return
        try:
            await self.voice_service.handle_channel_deleted(channel.id)
        except Exception:
            logger.exception(
                "Deleted channel could not be untracked",
                extra=log_extra(channel_id=channel.id),
            )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(VoiceEvents(bot))
