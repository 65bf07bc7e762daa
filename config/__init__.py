from .config_loader import BotSettings, ConfigLoader, load_settings

__all__ = ["BotSettings", "ConfigLoader", "load_settings"]
