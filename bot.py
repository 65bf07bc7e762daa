import sys

import discord
from discord.ext import commands
from dotenv import load_dotenv

from config.config_loader import BotSettings, ConfigLoader, load_settings
from services.service_container import ServiceContainer
from utils.errors import ConfigError
from utils.logging import configure_logging, get_logger

# Initialize logger
logger = get_logger(__name__)

# Configure intents - start from none and enable only what's required
intents = discord.Intents.none()
intents.guilds = True  # Required: guild and channel cache, channel delete events
intents.voice_states = True  # Required: voice channel join/leave

# List of initial extensions to load
initial_extensions = [
    "cogs.voice.events",
]


class TempVoiceBot(commands.Bot):
    """Bot that owns the temporary voice channel services."""

    def __init__(self, settings: BotSettings, **kwargs) -> None:
        kwargs.setdefault("command_prefix", commands.when_mentioned)
        kwargs.setdefault("intents", intents)
        super().__init__(**kwargs)
        self.settings = settings
        self.services: ServiceContainer | None = None

    async def setup_hook(self) -> None:
        """Initialize services, then load cogs that depend on them."""
        self.services = ServiceContainer(self.settings, bot=self)
        await self.services.initialize()
        logger.info("ServiceContainer initialized")

        for ext in initial_extensions:
            await self.load_extension(ext)
            logger.info("Loaded extension: %s", ext)

    async def on_ready(self) -> None:
        if self.user is None:
            return
        logger.info("Bot is online as %s (ID: %s)", self.user.name, self.user.id)

        creator_id = self.settings.creator_channel_id
        if self.get_channel(creator_id) is None:
            logger.warning(
                "Creator channel %s is not visible to the bot; no channels will be created",
                creator_id,
            )
        else:
            logger.info("Watching creator channel ID: %s", creator_id)

    async def close(self) -> None:
        if self.services is not None:
            await self.services.cleanup()
        await super().close()


def main() -> None:
    load_dotenv()
    ConfigLoader.load_config()
    configure_logging()

    try:
        settings = load_settings()
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)

    bot = TempVoiceBot(settings)
    try:
        # log_handler=None keeps discord.py from replacing our logging setup
        bot.run(settings.token, log_handler=None)
    except discord.LoginFailure as e:
        logger.critical("Failed to log in to Discord: %s", e)
        sys.exit(1)
    except (discord.GatewayNotFound, discord.ConnectionClosed) as e:
        logger.critical("Failed to connect to Discord: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
