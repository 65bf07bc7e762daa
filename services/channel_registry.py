"""
In-memory registry of the temporary voice channels the bot manages.

The registry is the single source of truth for "is this channel one of
ours". It is injected into the services that need it rather than living
at module level, so each test can use a fresh instance.

Concurrency model: every method here is synchronous and therefore atomic
on the event loop. Callers that read a record, await something (a REST
call, a member lookup) and then mutate the record must either hold ``lock``
for the whole sequence, or release it around the REST call and check on
reacquiring that the record is still the one they started with.
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.deletion_scheduler import DeletionTask


@dataclass
class ChannelRecord:
    """Lifecycle metadata for one tracked temporary channel."""

    owner_id: int
    pending_deletion: "DeletionTask | None" = None
    # Set while the owner's new channel is replacing this one
    replacing: bool = False

    @property
    def is_counting_down(self) -> bool:
        return self.pending_deletion is not None


class ChannelRegistry:
    """Lock-guarded mapping of channel id to ChannelRecord."""

    def __init__(self) -> None:
        self._records: dict[int, ChannelRecord] = {}
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._records

    def insert(self, channel_id: int, record: ChannelRecord) -> None:
        """Track a channel. Replacing a live record is a caller bug."""
        existing = self._records.get(channel_id)
        if existing is not None and existing is not record:
            raise ValueError(f"Channel {channel_id} is already tracked")
        self._records[channel_id] = record

    def remove(self, channel_id: int) -> ChannelRecord | None:
        return self._records.pop(channel_id, None)

    def get(self, channel_id: int | None) -> ChannelRecord | None:
        if channel_id is None:
            return None
        return self._records.get(channel_id)

    def find_by_owner(self, owner_id: int) -> int | None:
        for channel_id, record in self._records.items():
            if record.owner_id == owner_id:
                return channel_id
        return None

    def exists_for_owner(self, owner_id: int) -> bool:
        return self.find_by_owner(owner_id) is not None

    def snapshot(self) -> list[tuple[int, ChannelRecord]]:
        """Point-in-time copy of (channel_id, record) pairs."""
        return list(self._records.items())

    def pending_count(self) -> int:
        return sum(1 for record in self._records.values() if record.is_counting_down)
