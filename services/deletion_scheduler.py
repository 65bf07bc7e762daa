"""
Deferred deletion of empty temporary channels.

Each countdown is a DeletionTask: a timer task plus an asyncio.Event used
as a cancel token. Cancelling sets the token, which ends the wait early;
the timer task itself is never cancelled, so a delete request that was
already issued runs to completion.

Per channel:

    [no-task] --empty--> [counting-down] --timeout--> [deleted, record removed]
    [counting-down] --join--> [no-task]
    [counting-down] --re-empty--> [counting-down]   (old token set, new task)
"""

import asyncio
from typing import Any

from config.config_loader import DEFAULT_GRACE_PERIOD_SECONDS
from utils.errors import PlatformRequestFailed
from utils.log_context import log_extra
from utils.logging import get_logger
from utils.tasks import cancel_and_wait, spawn
from utils.types import VoicePlatform

from .channel_registry import ChannelRegistry

logger = get_logger(__name__)


class DeletionTask:
    """Handle for one channel's countdown."""

    def __init__(self, channel_id: int, channel_name: str, grace_period: float) -> None:
        self.channel_id = channel_id
        self.channel_name = channel_name
        self.grace_period = grace_period
        self._cancel_token = asyncio.Event()
        self._fired = False
        self._timer: asyncio.Task[Any] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_token.is_set()

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def done(self) -> bool:
        return self._timer is not None and self._timer.done()

    def cancel(self) -> bool:
        """
        Stop the countdown if it has not fired yet.

        Returns True if this call stopped the timer, False if it had already
        fired or been cancelled.
        """
        if self._fired or self._cancel_token.is_set():
            return False
        self._cancel_token.set()
        return True

    def _mark_fired(self) -> None:
        self._fired = True

    async def _expired(self) -> bool:
        """Wait out the grace period; True if it elapsed without a cancel."""
        try:
            await asyncio.wait_for(self._cancel_token.wait(), timeout=self.grace_period)
        except TimeoutError:
            return not self._cancel_token.is_set()
        return False

    def __repr__(self) -> str:
        state = "fired" if self._fired else "cancelled" if self.cancelled else "pending"
        return f"<DeletionTask channel={self.channel_id} {state}>"


class DeletionScheduler:
    """Starts and cancels per-channel deletion countdowns."""

    def __init__(
        self,
        platform: VoicePlatform,
        registry: ChannelRegistry,
        grace_period: float = DEFAULT_GRACE_PERIOD_SECONDS,
    ) -> None:
        self.platform = platform
        self.registry = registry
        self.grace_period = grace_period
        self._timers: set[asyncio.Task[Any]] = set()

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    def schedule_deletion(self, channel_id: int, channel_name: str) -> DeletionTask:
        """
        Start a countdown for ``channel_id``.

        The caller holds ``registry.lock`` and stores the returned handle on
        the channel's record after cancelling any previous handle.
        """
        handle = DeletionTask(channel_id, channel_name, self.grace_period)
        timer = spawn(self._run(handle), name=f"tempvoice.delete.{channel_id}")
        handle._timer = timer
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)
        logger.info(
            "Channel %s is empty, deleting in %ss",
            channel_name,
            self.grace_period,
            extra=log_extra(channel_id=channel_id),
        )
        return handle

    @staticmethod
    def cancel(handle: DeletionTask | None) -> bool:
        """Idempotent cancel; a missing or already-finished handle is a no-op."""
        if handle is None:
            return False
        return handle.cancel()

    async def _run(self, handle: DeletionTask) -> None:
        channel_id = handle.channel_id

        if not await handle._expired():
            logger.debug(
                "Deletion countdown cancelled", extra=log_extra(channel_id=channel_id)
            )
            return

        async with self.registry.lock:
            record = self.registry.get(channel_id)
            if record is None or record.pending_deletion is not handle or handle.cancelled:
                # Lost the race against a join, a replacement, or an external delete.
                return
            handle._mark_fired()

        try:
            await self.platform.delete_channel(channel_id)
        except PlatformRequestFailed as e:
            logger.error(
                "Failed to delete channel %s: %s",
                handle.channel_name,
                e,
                extra=log_extra(channel_id=channel_id),
            )
            async with self.registry.lock:
                if record.pending_deletion is handle:
                    record.pending_deletion = None
            return

        async with self.registry.lock:
            if self.registry.get(channel_id) is record:
                self.registry.remove(channel_id)
        logger.info(
            "Deleted temporary channel %s",
            handle.channel_name,
            extra=log_extra(channel_id=channel_id, owner_id=str(record.owner_id)),
        )

    async def shutdown(self) -> None:
        """Cancel every outstanding countdown and wait for the timers to exit."""
        async with self.registry.lock:
            for _, record in self.registry.snapshot():
                if self.cancel(record.pending_deletion):
                    record.pending_deletion = None
        await cancel_and_wait(set(self._timers))
