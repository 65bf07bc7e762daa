"""
Tests for the Manage Channels capability gate.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from helpers.permissions_helper import ensure_manage_capability, has_manage_capability
from utils.errors import PermissionDenied, PlatformRequestFailed


@pytest.mark.asyncio
async def test_allows_when_bot_can_manage_channels(platform):
    assert await has_manage_capability(platform, platform.guild) is True


@pytest.mark.asyncio
async def test_denies_without_permission(platform):
    platform.manage_channels = False
    assert await has_manage_capability(platform, platform.guild) is False


@pytest.mark.asyncio
async def test_denies_when_guild_missing(platform):
    assert await has_manage_capability(platform, None) is False


@pytest.mark.asyncio
async def test_denies_when_bot_member_unresolvable(platform):
    platform.fail_agent_lookup = True
    assert await has_manage_capability(platform, platform.guild) is False


@pytest.mark.asyncio
async def test_denies_when_member_fetch_fails():
    platform = MagicMock()
    platform.current_agent_id.return_value = 999
    platform.resolve_member = AsyncMock(
        side_effect=PlatformRequestFailed("fetch_member", "503 Service Unavailable")
    )

    assert await has_manage_capability(platform, SimpleNamespace(id=1)) is False


@pytest.mark.asyncio
async def test_denies_when_permission_data_missing():
    platform = MagicMock()
    platform.current_agent_id.return_value = 999
    platform.resolve_member = AsyncMock(return_value=SimpleNamespace(id=999))

    assert await has_manage_capability(platform, SimpleNamespace(id=1)) is False


@pytest.mark.asyncio
async def test_ensure_raises_permission_denied(platform):
    platform.manage_channels = False

    with pytest.raises(PermissionDenied, match="Manage Channels"):
        await ensure_manage_capability(platform, platform.guild)


@pytest.mark.asyncio
async def test_ensure_passes_with_permission(platform):
    await ensure_manage_capability(platform, platform.guild)
