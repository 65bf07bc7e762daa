"""
Access policy for temporary voice channels.

The overwrites applied to a new channel are described by a declarative
table (subject -> allow/deny sets of discord.Permissions flag names) so the
policy can be read and tested without touching the Discord SDK. The
platform adapter turns OverlayEntry values into discord.PermissionOverwrite
objects.

Two variants exist:
    - default: the owner may move members on their own channel.
    - hardened: nobody but the bot may move members on the channel; the
      owner instead receives move_members on the waiting room only.
"""

from dataclasses import dataclass
from enum import Enum

CONNECT = "connect"
MOVE_MEMBERS = "move_members"
MANAGE_CHANNELS = "manage_channels"
MUTE_MEMBERS = "mute_members"
DEAFEN_MEMBERS = "deafen_members"


class OverlaySubject(Enum):
    """Who an overwrite applies to."""

    DEFAULT_ROLE = "default_role"
    OWNER = "owner"
    AGENT = "agent"


@dataclass(frozen=True)
class OverlayRule:
    allow: frozenset[str] = frozenset()
    deny: frozenset[str] = frozenset()


@dataclass(frozen=True)
class OverlayEntry:
    """One concrete overwrite: a role or member id with its allow/deny sets."""

    subject: OverlaySubject
    target_id: int
    allow: frozenset[str]
    deny: frozenset[str]

    @property
    def is_role(self) -> bool:
        return self.subject is OverlaySubject.DEFAULT_ROLE


@dataclass(frozen=True)
class NarrowGrant:
    """A single capability granted to one member on one other channel."""

    channel_id: int
    subject_id: int
    capability: str


_AGENT_RULE = OverlayRule(allow=frozenset({CONNECT, MOVE_MEMBERS, MANAGE_CHANNELS}))

ACCESS_POLICY: dict[str, dict[OverlaySubject, OverlayRule]] = {
    "default": {
        OverlaySubject.DEFAULT_ROLE: OverlayRule(deny=frozenset({CONNECT})),
        OverlaySubject.OWNER: OverlayRule(
            allow=frozenset(
                {CONNECT, MOVE_MEMBERS, MANAGE_CHANNELS, MUTE_MEMBERS, DEAFEN_MEMBERS}
            )
        ),
        OverlaySubject.AGENT: _AGENT_RULE,
    },
    "hardened": {
        OverlaySubject.DEFAULT_ROLE: OverlayRule(
            deny=frozenset({CONNECT, MOVE_MEMBERS})
        ),
        OverlaySubject.OWNER: OverlayRule(
            allow=frozenset({CONNECT, MANAGE_CHANNELS, MUTE_MEMBERS, DEAFEN_MEMBERS})
        ),
        OverlaySubject.AGENT: _AGENT_RULE,
    },
}


def policy_name(hardened: bool) -> str:
    return "hardened" if hardened else "default"


def build_access_overlay(
    guild_id: int, owner_id: int, agent_id: int, *, hardened: bool = False
) -> tuple[OverlayEntry, ...]:
    """
    Build the overwrites for a new temporary channel.

    The guild's default role shares the guild id. If the owner is the bot
    itself, the bot entry wins so the bot never loses its own access.
    """
    rules = ACCESS_POLICY[policy_name(hardened)]
    targets = {
        OverlaySubject.DEFAULT_ROLE: guild_id,
        OverlaySubject.OWNER: owner_id,
        OverlaySubject.AGENT: agent_id,
    }

    entries = [
        OverlayEntry(
            subject=subject,
            target_id=targets[subject],
            allow=rule.allow,
            deny=rule.deny,
        )
        for subject, rule in rules.items()
    ]
    if owner_id == agent_id:
        entries = [e for e in entries if e.subject is not OverlaySubject.OWNER]
    return tuple(entries)


def build_narrow_grants(
    owner_id: int, waiting_room_channel_id: int | None, *, hardened: bool = False
) -> tuple[NarrowGrant, ...]:
    """Grants applied outside the new channel; only the hardened variant has one."""
    if not hardened or waiting_room_channel_id is None:
        return ()
    return (
        NarrowGrant(
            channel_id=waiting_room_channel_id,
            subject_id=owner_id,
            capability=MOVE_MEMBERS,
        ),
    )
