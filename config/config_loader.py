"""
Configuration for the temporary voice bot.

Behaviour settings live in config/config.yaml and are read once through
ConfigLoader. Secrets and guild-specific IDs come from the environment
(.env via python-dotenv) and are combined with the YAML section by
load_settings() into an immutable BotSettings.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

import yaml

from utils.errors import ConfigError

DEFAULT_GRACE_PERIOD_SECONDS = 5.0
DEFAULT_RECONCILE_INTERVAL_SECONDS = 60.0
DEFAULT_CHANNEL_NAME_TEMPLATE = "{name}'s Channel"

OWNER_MOVE_SCOPE_CHANNEL = "channel"
OWNER_MOVE_SCOPE_WAITING_ROOM = "waiting_room"
OWNER_MOVE_SCOPES = (OWNER_MOVE_SCOPE_CHANNEL, OWNER_MOVE_SCOPE_WAITING_ROOM)

LOGGING_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

STATUS_NOT_LOADED = "not_loaded"
STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_ERROR = "error"

DEFAULT_CONFIG_FILE = Path(__file__).resolve().parent / "config.yaml"


class ConfigLoader:
    """
    Process-wide holder for the parsed config.yaml.

    A missing or non-mapping file leaves the bot running on defaults with
    status ``degraded``; unparseable YAML does the same with status
    ``error``. Either way ``load_config`` returns a dict and never raises.
    """

    _config: ClassVar[dict[str, Any]] = {}
    _config_status: ClassVar[str] = STATUS_NOT_LOADED
    _config_path: ClassVar[str | None] = None

    @classmethod
    def load_config(cls, config_path: str | None = None) -> dict[str, Any]:
        """
        Parse the YAML file on first call and cache it.

        The path is, in order: the argument, ``$CONFIG_PATH``, then
        config/config.yaml next to this module.
        """
        if cls._config_status != STATUS_NOT_LOADED:
            return cls._config

        path = config_path or os.environ.get("CONFIG_PATH") or str(DEFAULT_CONFIG_FILE)
        cls._config_path = path
        cls._config, cls._config_status = cls._read(path)
        if cls._config_status == STATUS_OK:
            cls._validate_logging_level()
        return cls._config

    @staticmethod
    def _read(path: str) -> tuple[dict[str, Any], str]:
        try:
            with Path(path).open(encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except FileNotFoundError:
            logging.warning("No config file at %s; running on defaults", path)
            return {}, STATUS_DEGRADED
        except yaml.YAMLError:
            logging.exception("config file %s is not valid YAML; running on defaults", path)
            return {}, STATUS_ERROR

        if data is None:
            data = {}
        if not isinstance(data, dict):
            logging.warning(
                "config file %s holds a %s, not a mapping; running on defaults",
                path,
                type(data).__name__,
            )
            return {}, STATUS_DEGRADED

        logging.info("Loaded config from %s", path)
        return data, STATUS_OK

    @classmethod
    def _validate_logging_level(cls) -> None:
        section = cls._config.get("logging") or {}
        level = str(section.get("level", "INFO"))
        if level.upper() not in LOGGING_LEVELS:
            logging.warning("Unknown logging level %r in config; using INFO", level)
            cls._config.setdefault("logging", {})["level"] = "INFO"

    @classmethod
    def get_config_status(cls) -> dict[str, Any]:
        return {
            "config_status": cls._config_status,
            "config_path": cls._config_path,
            "config_loaded": bool(cls._config),
        }

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """Top-level lookup in the loaded config."""
        return cls._config.get(key, default)

    @classmethod
    def reset(cls) -> None:
        cls._config = {}
        cls._config_status = STATUS_NOT_LOADED
        cls._config_path = None


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BotSettings:
    """Validated settings the bot needs to start."""

    token: str
    creator_channel_id: int
    waiting_room_channel_id: int | None = None
    grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS
    owner_move_scope: str = OWNER_MOVE_SCOPE_CHANNEL
    reconcile_interval_seconds: float = DEFAULT_RECONCILE_INTERVAL_SECONDS
    channel_name_template: str = DEFAULT_CHANNEL_NAME_TEMPLATE

    @property
    def hardened_permissions(self) -> bool:
        """Owner gets move-members on the waiting room only, not on their channel."""
        return self.owner_move_scope == OWNER_MOVE_SCOPE_WAITING_ROOM


def _parse_channel_id(raw: str | None, name: str) -> int | None:
    if raw is None or not raw.strip():
        return None
    return _channel_id_value(raw, name)


def _require_channel_id(raw: str | None, name: str) -> int:
    if raw is None or not raw.strip():
        raise ConfigError(f"{name} not set.")
    return _channel_id_value(raw, name)


def _channel_id_value(raw: str, name: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} is not a valid channel id: {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{name} must be a positive channel id, got {value}")
    return value


def _parse_seconds(raw: Any, name: str, default: float, *, allow_zero: bool) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"voice.{name} must be a number, got {raw!r}") from e
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"voice.{name} out of range: {value}")
    return value


def _check_name_template(template: Any) -> None:
    if not isinstance(template, str) or "{name}" not in template:
        raise ConfigError("voice.channel_name_template must contain '{name}'")
    # Only {name} is supplied at creation time
    try:
        template.format(name="x")
    except (KeyError, IndexError, AttributeError, ValueError) as e:
        raise ConfigError(
            f"voice.channel_name_template {template!r} is not a valid template: {e!r}"
        ) from e


def load_settings(
    env: dict[str, str] | None = None, config: dict[str, Any] | None = None
) -> BotSettings:
    """
    Build BotSettings from environment variables and config.yaml.

    Secrets and channel ids come from the environment (.env via python-dotenv);
    lifecycle behaviour comes from the ``voice`` section of config.yaml.

    Raises:
        ConfigError: if a required value is missing or malformed.
    """
    env = os.environ if env is None else env
    config = ConfigLoader.load_config() if config is None else config

    token = (env.get("DISCORD_TOKEN") or "").strip()
    if not token:
        raise ConfigError("DISCORD_TOKEN not set.")

    creator_channel_id = _require_channel_id(env.get("CREATOR_CHANNEL_ID"), "CREATOR_CHANNEL_ID")
    waiting_room_channel_id = _parse_channel_id(
        env.get("WAITING_ROOM_CHANNEL_ID"), "WAITING_ROOM_CHANNEL_ID"
    )

    voice_cfg = config.get("voice") or {}
    if not isinstance(voice_cfg, dict):
        raise ConfigError("voice section of config must be a mapping")

    owner_move_scope = str(
        voice_cfg.get("owner_move_scope", OWNER_MOVE_SCOPE_CHANNEL)
    ).lower()
    if owner_move_scope not in OWNER_MOVE_SCOPES:
        raise ConfigError(
            f"voice.owner_move_scope must be one of {OWNER_MOVE_SCOPES}, got {owner_move_scope!r}"
        )
    if owner_move_scope == OWNER_MOVE_SCOPE_WAITING_ROOM and waiting_room_channel_id is None:
        raise ConfigError(
            "voice.owner_move_scope is 'waiting_room' but WAITING_ROOM_CHANNEL_ID is not set."
        )

    template = voice_cfg.get("channel_name_template", DEFAULT_CHANNEL_NAME_TEMPLATE)
    _check_name_template(template)

    return BotSettings(
        token=token,
        creator_channel_id=creator_channel_id,
        waiting_room_channel_id=waiting_room_channel_id,
        grace_period_seconds=_parse_seconds(
            voice_cfg.get("grace_period_seconds"),
            "grace_period_seconds",
            DEFAULT_GRACE_PERIOD_SECONDS,
            allow_zero=False,
        ),
        owner_move_scope=owner_move_scope,
        reconcile_interval_seconds=_parse_seconds(
            voice_cfg.get("reconcile_interval_seconds"),
            "reconcile_interval_seconds",
            DEFAULT_RECONCILE_INTERVAL_SECONDS,
            allow_zero=True,
        ),
        channel_name_template=template,
    )
