"""
Tests for the discord.py implementation of the voice platform.

Discord objects are MagicMock(spec=...) doubles, so isinstance checks in the
adapter see the real discord.py classes.
"""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from helpers.discord_api import DiscordVoicePlatform
from helpers.voice_permissions import build_access_overlay
from utils.errors import PlatformRequestFailed, ResolutionFailed

GUILD_ID = 1
OWNER_ID = 42
AGENT_ID = 999
CATEGORY_ID = 500


def make_voice_channel(channel_id=2000, name="Alice's Channel", members=(), category_id=None):
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = channel_id
    channel.name = name
    channel.members = list(members)
    channel.category_id = category_id
    channel.delete = AsyncMock()
    channel.set_permissions = AsyncMock()
    return channel


def make_discord_member(user_id):
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.move_to = AsyncMock()
    return member


@pytest.fixture
def client():
    client = MagicMock(spec=discord.Client)
    client.user = MagicMock()
    client.user.id = AGENT_ID
    client.get_channel.return_value = None
    client.fetch_channel = AsyncMock()
    return client


@pytest.fixture
def guild():
    guild = MagicMock(spec=discord.Guild)
    guild.id = GUILD_ID
    guild.get_member.return_value = None
    guild.get_role.return_value = None
    guild.get_channel.return_value = None
    guild.fetch_member = AsyncMock()
    guild.create_voice_channel = AsyncMock(return_value=MagicMock(id=5000))
    return guild


@pytest.fixture
def api(client):
    return DiscordVoicePlatform(client)


class TestCacheLookups:
    def test_resolve_group(self, api, client, guild):
        client.get_guild.return_value = guild
        assert api.resolve_group(GUILD_ID) is guild
        client.get_guild.assert_called_once_with(GUILD_ID)

    def test_current_agent_id(self, api):
        assert api.current_agent_id() == AGENT_ID

    def test_current_agent_id_before_login(self, api, client):
        client.user = None
        with pytest.raises(ResolutionFailed):
            api.current_agent_id()

    def test_channel_lookups(self, api, client):
        client.get_channel.return_value = make_voice_channel(category_id=CATEGORY_ID)

        assert api.parent_category_id(2000) == CATEGORY_ID
        assert api.channel_name(2000) == "Alice's Channel"
        assert api.channel_exists(2000) is True

    def test_channel_lookups_when_missing(self, api):
        assert api.parent_category_id(2000) is None
        assert api.channel_name(2000) is None
        assert api.channel_exists(2000) is False


class TestMembers:
    @pytest.mark.asyncio
    async def test_resolve_member_from_cache(self, api, guild):
        member = make_discord_member(OWNER_ID)
        guild.get_member.return_value = member

        assert await api.resolve_member(guild, OWNER_ID) is member
        guild.fetch_member.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolve_member_fetches_on_cache_miss(self, api, guild):
        member = make_discord_member(OWNER_ID)
        guild.fetch_member.return_value = member

        assert await api.resolve_member(guild, OWNER_ID) is member
        guild.fetch_member.assert_awaited_once_with(OWNER_ID)

    @pytest.mark.asyncio
    async def test_resolve_member_not_found(self, api, guild):
        guild.fetch_member.side_effect = discord.NotFound(MagicMock(), "Unknown Member")

        with pytest.raises(ResolutionFailed):
            await api.resolve_member(guild, OWNER_ID)

    @pytest.mark.asyncio
    async def test_resolve_member_http_error(self, api, guild):
        guild.fetch_member.side_effect = discord.HTTPException(MagicMock(), "Service Unavailable")

        with pytest.raises(PlatformRequestFailed) as exc_info:
            await api.resolve_member(guild, OWNER_ID)
        assert exc_info.value.operation == "fetch_member"

    @pytest.mark.asyncio
    async def test_list_members_present(self, api, client):
        members = [make_discord_member(1), make_discord_member(2)]
        client.get_channel.return_value = make_voice_channel(members=members)

        assert await api.list_members_present(2000) == [1, 2]

    @pytest.mark.asyncio
    async def test_list_members_of_unknown_channel(self, api):
        with pytest.raises(ResolutionFailed):
            await api.list_members_present(2000)


class TestCreateVoiceChannel:
    @pytest.mark.asyncio
    async def test_creates_with_overwrites_under_category(self, api, guild):
        category = MagicMock(spec=discord.CategoryChannel)
        guild.get_channel.return_value = category
        owner = make_discord_member(OWNER_ID)
        guild.get_member.side_effect = lambda uid: owner if uid == OWNER_ID else None
        overlay = build_access_overlay(GUILD_ID, OWNER_ID, AGENT_ID)

        channel_id = await api.create_voice_channel(guild, "Alice's Channel", CATEGORY_ID, overlay)

        assert channel_id == 5000
        kwargs = guild.create_voice_channel.await_args.kwargs
        assert kwargs["name"] == "Alice's Channel"
        assert kwargs["category"] is category

        overwrites = kwargs["overwrites"]
        assert overwrites[guild.default_role].connect is False
        assert overwrites[owner].move_members is True
        assert overwrites[owner].mute_members is True

        agent_keys = [k for k in overwrites if isinstance(k, discord.Object)]
        assert [k.id for k in agent_keys] == [AGENT_ID]
        assert overwrites[agent_keys[0]].manage_channels is True

    @pytest.mark.asyncio
    async def test_non_category_parent_is_ignored(self, api, guild):
        guild.get_channel.return_value = make_voice_channel()

        await api.create_voice_channel(guild, "name", CATEGORY_ID, ())

        assert guild.create_voice_channel.await_args.kwargs["category"] is None

    @pytest.mark.asyncio
    async def test_create_failure(self, api, guild):
        guild.create_voice_channel.side_effect = discord.Forbidden(MagicMock(), "Missing Permissions")

        with pytest.raises(PlatformRequestFailed) as exc_info:
            await api.create_voice_channel(guild, "name", None, ())
        assert exc_info.value.operation == "create_voice_channel"


class TestDeleteChannel:
    @pytest.mark.asyncio
    async def test_deletes_cached_channel(self, api, client):
        channel = make_voice_channel()
        client.get_channel.return_value = channel

        await api.delete_channel(2000)

        channel.delete.assert_awaited_once()
        client.fetch_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetches_uncached_channel(self, api, client):
        channel = make_voice_channel()
        client.fetch_channel.return_value = channel

        await api.delete_channel(2000)

        client.fetch_channel.assert_awaited_once_with(2000)
        channel.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_already_deleted_is_success(self, api, client):
        client.fetch_channel.side_effect = discord.NotFound(MagicMock(), "Unknown Channel")

        await api.delete_channel(2000)

    @pytest.mark.asyncio
    async def test_delete_failure(self, api, client):
        channel = make_voice_channel()
        channel.delete.side_effect = discord.HTTPException(MagicMock(), "Internal Server Error")
        client.get_channel.return_value = channel

        with pytest.raises(PlatformRequestFailed):
            await api.delete_channel(2000)


class TestRelocateAndGrant:
    @pytest.mark.asyncio
    async def test_relocate_member(self, api, client, guild):
        channel = make_voice_channel()
        client.get_channel.return_value = channel
        member = make_discord_member(OWNER_ID)
        guild.get_member.return_value = member

        await api.relocate_member(guild, OWNER_ID, 2000)

        assert member.move_to.await_args.args == (channel,)

    @pytest.mark.asyncio
    async def test_relocate_failure(self, api, client, guild):
        client.get_channel.return_value = make_voice_channel()
        member = make_discord_member(OWNER_ID)
        member.move_to.side_effect = discord.HTTPException(MagicMock(), "Target user is not connected to voice")
        guild.get_member.return_value = member

        with pytest.raises(PlatformRequestFailed):
            await api.relocate_member(guild, OWNER_ID, 2000)

    @pytest.mark.asyncio
    async def test_relocate_into_unknown_channel(self, api, guild):
        with pytest.raises(ResolutionFailed):
            await api.relocate_member(guild, OWNER_ID, 2000)

    @pytest.mark.asyncio
    async def test_grant_narrow_permission(self, api, client):
        waiting_room = make_voice_channel(channel_id=1001, name="Waiting Room")
        member = make_discord_member(OWNER_ID)
        waiting_room.guild = MagicMock()
        waiting_room.guild.get_member.return_value = member
        waiting_room.overwrites_for.return_value = discord.PermissionOverwrite(connect=True)
        client.get_channel.return_value = waiting_room

        await api.grant_narrow_permission(1001, OWNER_ID, "move_members")

        call = waiting_room.set_permissions.await_args
        assert call.args == (member,)
        overwrite = call.kwargs["overwrite"]
        assert overwrite.move_members is True
        assert overwrite.connect is True

    @pytest.mark.asyncio
    async def test_grant_on_unknown_channel(self, api):
        with pytest.raises(ResolutionFailed):
            await api.grant_narrow_permission(1001, OWNER_ID, "move_members")
