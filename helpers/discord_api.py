"""
Centralized module for all Discord API calls made by the voice lifecycle.

DiscordVoicePlatform implements utils.types.VoicePlatform on top of a
discord.py client. Cache lookups are synchronous; REST calls translate
discord.HTTPException into PlatformRequestFailed so the services never see
SDK exception types.
"""

from typing import Any

import discord

from helpers.voice_permissions import OverlayEntry
from utils.errors import PlatformRequestFailed, ResolutionFailed
from utils.logging import get_logger

logger = get_logger(__name__)

_VOICE_LIKE = (discord.VoiceChannel, discord.StageChannel)


def _permissions(names: frozenset[str]) -> discord.Permissions:
    return discord.Permissions(**dict.fromkeys(names, True))


class DiscordVoicePlatform:
    """discord.py implementation of the voice platform capabilities."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    # -- cache lookups -----------------------------------------------------

    def resolve_group(self, guild_id: int) -> discord.Guild | None:
        return self.client.get_guild(guild_id)

    def current_agent_id(self) -> int:
        if self.client.user is None:
            raise ResolutionFailed("Bot user not available (client not logged in)")
        return self.client.user.id

    def parent_category_id(self, channel_id: int) -> int | None:
        channel = self.client.get_channel(channel_id)
        return getattr(channel, "category_id", None)

    def channel_name(self, channel_id: int) -> str | None:
        channel = self.client.get_channel(channel_id)
        return getattr(channel, "name", None)

    def channel_exists(self, channel_id: int) -> bool:
        return self.client.get_channel(channel_id) is not None

    def _voice_channel(self, channel_id: int) -> discord.VoiceChannel | discord.StageChannel:
        channel = self.client.get_channel(channel_id)
        if not isinstance(channel, _VOICE_LIKE):
            raise ResolutionFailed(f"Voice channel {channel_id} not found in cache")
        return channel

    # -- member lookups ----------------------------------------------------

    async def resolve_member(self, guild: discord.Guild, user_id: int) -> discord.Member:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound as e:
            raise ResolutionFailed(f"Member {user_id} not found in guild {guild.id}") from e
        except discord.HTTPException as e:
            raise PlatformRequestFailed("fetch_member", e) from e

    async def list_members_present(self, channel_id: int) -> list[int]:
        channel = self._voice_channel(channel_id)
        return [member.id for member in channel.members]

    # -- REST mutations ----------------------------------------------------

    def _to_overwrites(
        self, guild: discord.Guild, overlay: tuple[OverlayEntry, ...]
    ) -> dict[Any, discord.PermissionOverwrite]:
        overwrites: dict[Any, discord.PermissionOverwrite] = {}
        for entry in overlay:
            target: Any
            if entry.is_role:
                target = guild.get_role(entry.target_id) or guild.default_role
            else:
                target = guild.get_member(entry.target_id) or discord.Object(
                    id=entry.target_id, type=discord.Member
                )
            overwrites[target] = discord.PermissionOverwrite.from_pair(
                _permissions(entry.allow), _permissions(entry.deny)
            )
        return overwrites

    async def create_voice_channel(
        self,
        guild: discord.Guild,
        name: str,
        parent_category_id: int | None,
        overlay: tuple[OverlayEntry, ...],
    ) -> int:
        category = None
        if parent_category_id is not None:
            candidate = guild.get_channel(parent_category_id)
            if isinstance(candidate, discord.CategoryChannel):
                category = candidate
            else:
                logger.warning(
                    "Parent category %s not found in guild %s; creating at top level",
                    parent_category_id,
                    guild.id,
                )

        try:
            channel = await guild.create_voice_channel(
                name=name,
                category=category,
                overwrites=self._to_overwrites(guild, overlay),
                reason="Temporary voice channel",
            )
        except discord.HTTPException as e:
            raise PlatformRequestFailed("create_voice_channel", e) from e
        return channel.id

    async def delete_channel(self, channel_id: int) -> None:
        """Delete a channel. A channel that is already gone counts as deleted."""
        channel = self.client.get_channel(channel_id)
        try:
            if channel is None:
                channel = await self.client.fetch_channel(channel_id)
            await channel.delete(reason="Temporary voice channel empty")  # type: ignore[union-attr]
        except discord.NotFound:
            logger.info("Channel %s already deleted", channel_id)
        except discord.HTTPException as e:
            raise PlatformRequestFailed("delete_channel", e) from e

    async def relocate_member(self, guild: discord.Guild, user_id: int, channel_id: int) -> None:
        channel = self._voice_channel(channel_id)
        member = await self.resolve_member(guild, user_id)
        try:
            await member.move_to(channel, reason="Moved into temporary voice channel")
        except discord.HTTPException as e:
            raise PlatformRequestFailed("move_member", e) from e

    async def grant_narrow_permission(
        self, channel_id: int, subject_id: int, capability: str
    ) -> None:
        channel = self.client.get_channel(channel_id)
        if not isinstance(channel, discord.abc.GuildChannel):
            raise ResolutionFailed(f"Channel {channel_id} not found in cache")

        target = channel.guild.get_member(subject_id) or discord.Object(
            id=subject_id, type=discord.Member
        )
        overwrite = channel.overwrites_for(target)
        setattr(overwrite, capability, True)
        try:
            await channel.set_permissions(
                target, overwrite=overwrite, reason="Temporary voice channel owner"
            )
        except discord.HTTPException as e:
            raise PlatformRequestFailed("set_permissions", e) from e
