"""
Service Container

Wires the voice lifecycle components together and owns their lifecycle.
"""

from typing import TYPE_CHECKING

from config.config_loader import BotSettings
from helpers.discord_api import DiscordVoicePlatform
from utils.logging import get_logger
from utils.types import VoicePlatform

from .channel_provisioner import ChannelProvisioner
from .channel_registry import ChannelRegistry
from .deletion_scheduler import DeletionScheduler
from .voice_service import TempVoiceService

if TYPE_CHECKING:
    import discord


class ServiceContainer:
    """
    Central container for the bot's services.

    The platform can be injected so tests run the real wiring against an
    in-memory fake instead of a discord.py client.
    """

    def __init__(
        self,
        settings: BotSettings,
        bot: "discord.Client | None" = None,
        platform: VoicePlatform | None = None,
    ) -> None:
        self.logger = get_logger("services.container")
        self.settings = settings
        self.bot = bot
        self._platform = platform
        self._registry: ChannelRegistry | None = None
        self._voice: TempVoiceService | None = None
        self._initialized = False

    @property
    def registry(self) -> ChannelRegistry:
        if self._registry is None:
            raise RuntimeError("ChannelRegistry not initialized")
        return self._registry

    @property
    def voice(self) -> TempVoiceService:
        """Get the voice service."""
        if self._voice is None:
            raise RuntimeError("TempVoiceService not initialized")
        return self._voice

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _build_platform(self) -> VoicePlatform:
        if self._platform is not None:
            return self._platform
        if self.bot is None:
            raise RuntimeError("Bot instance required for DiscordVoicePlatform")
        return DiscordVoicePlatform(self.bot)

    async def initialize(self) -> None:
        """Build and start all services in dependency order."""
        if self._initialized:
            self.logger.warning("ServiceContainer already initialized")
            return

        settings = self.settings
        platform = self._build_platform()
        registry = ChannelRegistry()
        scheduler = DeletionScheduler(
            platform, registry, grace_period=settings.grace_period_seconds
        )
        provisioner = ChannelProvisioner(
            platform,
            registry,
            hardened=settings.hardened_permissions,
            waiting_room_channel_id=settings.waiting_room_channel_id,
            name_template=settings.channel_name_template,
        )
        voice = TempVoiceService(
            platform,
            registry,
            provisioner,
            scheduler,
            settings.creator_channel_id,
            reconcile_interval=settings.reconcile_interval_seconds,
        )
        await voice.initialize()

        self._registry = registry
        self._voice = voice
        self._initialized = True
        self.logger.info(
            "Services initialized (owner_move_scope=%s, grace_period=%ss)",
            settings.owner_move_scope,
            settings.grace_period_seconds,
        )

    async def cleanup(self) -> None:
        """Shut services down; pending countdowns are dropped with the process."""
        if not self._initialized:
            return

        self.logger.info("Cleaning up services")
        if self._voice:
            await self._voice.shutdown()
            self._voice = None
        self._registry = None
        self._initialized = False
