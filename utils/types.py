"""
Type definitions and common data structures for the temporary voice bot.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from helpers.voice_permissions import OverlayEntry

# Type aliases
GuildId = int
UserId = int
ChannelId = int


@dataclass(frozen=True)
class VoiceNotification:
    """Platform-neutral form of a voice state update for one user."""

    user_id: UserId
    guild_id: GuildId | None
    previous_channel_id: ChannelId | None
    new_channel_id: ChannelId | None
    user_name: str | None = None

    @property
    def is_same_channel(self) -> bool:
        return (
            self.previous_channel_id is not None
            and self.previous_channel_id == self.new_channel_id
        )


class VoicePlatform(Protocol):
    """
    Capabilities the lifecycle core consumes from the chat platform.

    Lookups that read the gateway cache are synchronous. Anything that talks
    to the REST API is a coroutine and raises PlatformRequestFailed on error.
    Lookups that find nothing raise ResolutionFailed (or return None where
    the signature says so).
    """

    def resolve_group(self, guild_id: GuildId) -> Any | None: ...

    async def resolve_member(self, guild: Any, user_id: UserId) -> Any: ...

    def current_agent_id(self) -> UserId: ...

    def parent_category_id(self, channel_id: ChannelId) -> ChannelId | None: ...

    def channel_name(self, channel_id: ChannelId) -> str | None: ...

    def channel_exists(self, channel_id: ChannelId) -> bool: ...

    async def create_voice_channel(
        self,
        guild: Any,
        name: str,
        parent_category_id: ChannelId | None,
        overlay: "tuple[OverlayEntry, ...]",
    ) -> ChannelId: ...

    async def delete_channel(self, channel_id: ChannelId) -> None: ...

    async def relocate_member(
        self, guild: Any, user_id: UserId, channel_id: ChannelId
    ) -> None: ...

    async def grant_narrow_permission(
        self, channel_id: ChannelId, subject_id: UserId, capability: str
    ) -> None: ...

    async def list_members_present(self, channel_id: ChannelId) -> list[UserId]: ...
