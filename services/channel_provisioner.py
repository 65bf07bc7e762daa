"""
Creation of owner-scoped temporary voice channels.
"""

from typing import Any, NamedTuple

from config.config_loader import DEFAULT_CHANNEL_NAME_TEMPLATE
from helpers.voice_permissions import build_access_overlay, build_narrow_grants
from utils.errors import PlatformRequestFailed, ResolutionFailed
from utils.log_context import log_extra
from utils.logging import get_logger
from utils.types import VoicePlatform

from .channel_registry import ChannelRecord, ChannelRegistry

logger = get_logger(__name__)

MAX_CHANNEL_NAME_LENGTH = 100


class ProvisionResult(NamedTuple):
    """Outcome of provisioning one temporary channel."""

    channel_id: int
    name: str
    relocated: bool


class ChannelProvisioner:
    """
    Creates a private voice channel for one owner and moves them into it.

    The record is inserted into the registry between creation and the move:
    moving the owner produces a voice state update for the new channel, and
    that update must find the channel already tracked.
    """

    def __init__(
        self,
        platform: VoicePlatform,
        registry: ChannelRegistry,
        *,
        hardened: bool = False,
        waiting_room_channel_id: int | None = None,
        name_template: str = DEFAULT_CHANNEL_NAME_TEMPLATE,
    ) -> None:
        self.platform = platform
        self.registry = registry
        self.hardened = hardened
        self.waiting_room_channel_id = waiting_room_channel_id
        self.name_template = name_template

    async def channel_name_for(
        self, guild: Any, owner_id: int, fallback_name: str | None = None
    ) -> str:
        """Display name in the guild, else account name, else the raw id."""
        try:
            member = await self.platform.resolve_member(guild, owner_id)
            name = getattr(member, "display_name", None) or getattr(member, "name", None)
        except (ResolutionFailed, PlatformRequestFailed) as e:
            logger.debug("Falling back to account name for %s: %s", owner_id, e)
            name = None
        name = name or fallback_name or str(owner_id)
        return self.name_template.format(name=name)[:MAX_CHANNEL_NAME_LENGTH]

    async def create_temporary_channel(
        self,
        guild: Any,
        owner_id: int,
        parent_category_id: int | None = None,
        *,
        fallback_name: str | None = None,
    ) -> ProvisionResult:
        """
        Create, track and move the owner into a new temporary channel.

        Returns:
            ProvisionResult; relocated is False if the move failed and the
            channel is left empty.

        Raises:
            PlatformRequestFailed: channel creation failed; nothing was tracked.
        """
        guild_id = getattr(guild, "id", None)
        name = await self.channel_name_for(guild, owner_id, fallback_name)
        overlay = build_access_overlay(
            guild_id,
            owner_id,
            self.platform.current_agent_id(),
            hardened=self.hardened,
        )

        channel_id = await self.platform.create_voice_channel(
            guild, name, parent_category_id, overlay
        )
        logger.info(
            "Created temporary channel %s",
            name,
            extra=log_extra(guild_id=guild_id, user_id=owner_id, channel_id=channel_id),
        )

        async with self.registry.lock:
            self.registry.insert(channel_id, ChannelRecord(owner_id=owner_id))

        await self._apply_narrow_grants(owner_id)

        relocated = False
        try:
            await self.platform.relocate_member(guild, owner_id, channel_id)
        except (PlatformRequestFailed, ResolutionFailed) as e:
            logger.error(
                "Error moving user into channel %s: %s",
                name,
                e,
                extra=log_extra(guild_id=guild_id, user_id=owner_id, channel_id=channel_id),
            )
        else:
            logger.info(
                "Moved owner into channel %s",
                name,
                extra=log_extra(guild_id=guild_id, user_id=owner_id, channel_id=channel_id),
            )
            relocated = True

        return ProvisionResult(channel_id, name, relocated)

    async def _apply_narrow_grants(self, owner_id: int) -> None:
        for grant in build_narrow_grants(
            owner_id, self.waiting_room_channel_id, hardened=self.hardened
        ):
            try:
                await self.platform.grant_narrow_permission(
                    grant.channel_id, grant.subject_id, grant.capability
                )
            except (PlatformRequestFailed, ResolutionFailed) as e:
                logger.warning(
                    "Could not grant %s on waiting room %s: %s",
                    grant.capability,
                    grant.channel_id,
                    e,
                    extra=log_extra(user_id=owner_id, channel_id=grant.channel_id),
                )
