"""
Test Factories Module

Centralized factory functions and fixtures for creating test objects.
Provides DRY utilities for Discord mocks, the in-memory voice platform and config fixtures.
"""

from .config_factories import (
    make_config,
    make_env,
    temp_config_file,
)
from .discord_factories import (
    FakeGuild,
    FakeMember,
    FakeUser,
    FakeVoiceChannel,
    FakeVoiceState,
    make_guild,
    make_member,
    make_voice_channel,
    make_voice_state,
)
from .platform_factories import (
    AGENT_ID,
    CATEGORY_ID,
    CREATOR_CHANNEL_ID,
    GUILD_ID,
    TEST_GRACE_PERIOD,
    WAITING_ROOM_CHANNEL_ID,
    FakeChannelState,
    FakePlatform,
    wait_for_grace,
)

__all__ = [
    "AGENT_ID",
    "CATEGORY_ID",
    "CREATOR_CHANNEL_ID",
    "GUILD_ID",
    "TEST_GRACE_PERIOD",
    "WAITING_ROOM_CHANNEL_ID",
    "FakeChannelState",
    "FakeGuild",
    "FakeMember",
    "FakePlatform",
    "FakeUser",
    "FakeVoiceChannel",
    "FakeVoiceState",
    "make_config",
    "make_env",
    "make_guild",
    "make_member",
    "make_voice_channel",
    "make_voice_state",
    "temp_config_file",
    "wait_for_grace",
]
