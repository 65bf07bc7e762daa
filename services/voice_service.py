"""
Voice service driving the temporary channel lifecycle from voice state updates.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from config.config_loader import DEFAULT_RECONCILE_INTERVAL_SECONDS
from helpers.permissions_helper import ensure_manage_capability
from utils.errors import PermissionDenied, PlatformRequestFailed, ResolutionFailed
from utils.log_context import log_extra
from utils.tasks import cancel_and_wait, spawn
from utils.types import VoiceNotification, VoicePlatform

from .base import BaseService
from .channel_provisioner import ChannelProvisioner
from .channel_registry import ChannelRegistry
from .deletion_scheduler import DeletionScheduler


@dataclass
class _OwnerLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class TempVoiceService(BaseService):
    """
    Dispatches voice state notifications to the lifecycle components.

    Every notification runs three phases in order, none of which short-circuit
    the others:

        1. join-creator:  provision a channel for the user
        2. leave-tracked: start a fresh countdown if the old channel is empty
        3. join-tracked:  cancel the countdown of the new channel

    A failure inside a phase is logged and ends that phase only.
    """

    def __init__(
        self,
        platform: VoicePlatform,
        registry: ChannelRegistry,
        provisioner: ChannelProvisioner,
        scheduler: DeletionScheduler,
        creator_channel_id: int,
        *,
        reconcile_interval: float = DEFAULT_RECONCILE_INTERVAL_SECONDS,
    ) -> None:
        super().__init__("voice")
        self.platform = platform
        self.registry = registry
        self.provisioner = provisioner
        self.scheduler = scheduler
        self.creator_channel_id = creator_channel_id
        self.reconcile_interval = reconcile_interval
        self._owner_locks: dict[int, _OwnerLock] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def _initialize_impl(self) -> None:
        if self.reconcile_interval > 0:
            task = spawn(self._reconcile_loop(), name="voice.reconcile_loop")
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
        self.logger.info(
            "Watching creator channel %s",
            self.creator_channel_id,
            extra=log_extra(channel_id=self.creator_channel_id),
        )

    async def _shutdown_impl(self) -> None:
        await cancel_and_wait(set(self._background_tasks))
        self._background_tasks.clear()
        await self.scheduler.shutdown()

    @contextlib.asynccontextmanager
    async def _owner_guard(self, owner_id: int) -> AsyncIterator[None]:
        """Per-owner lock serializing channel replacement and creation."""
        entry = self._owner_locks.setdefault(owner_id, _OwnerLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._owner_locks.pop(owner_id, None)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle_voice_state_change(self, notification: VoiceNotification) -> None:
        """Run the join-creator, leave-tracked and join-tracked phases."""
        if self.is_join_creator(notification):
            try:
                await self._handle_creator_join(notification)
            except Exception as e:
                self.logger.exception(
                    "Error handling creator channel join",
                    exc_info=e,
                    extra=log_extra(
                        guild_id=notification.guild_id, user_id=notification.user_id
                    ),
                )

        if notification.previous_channel_id is not None:
            try:
                await self.evaluate_empty_channel(notification.previous_channel_id)
            except Exception as e:
                self.logger.exception(
                    "Error handling leave of tracked channel",
                    exc_info=e,
                    extra=log_extra(channel_id=notification.previous_channel_id),
                )

        if notification.new_channel_id is not None:
            try:
                await self._handle_tracked_join(notification.new_channel_id)
            except Exception as e:
                self.logger.exception(
                    "Error handling join of tracked channel",
                    exc_info=e,
                    extra=log_extra(channel_id=notification.new_channel_id),
                )

    def is_join_creator(self, notification: VoiceNotification) -> bool:
        """A move into the creator channel; state changes inside it don't count."""
        return (
            notification.new_channel_id == self.creator_channel_id
            and not notification.is_same_channel
        )

    # ------------------------------------------------------------------
    # Phase 1: join-creator
    # ------------------------------------------------------------------

    async def _handle_creator_join(self, notification: VoiceNotification) -> None:
        owner_id = notification.user_id
        extra = log_extra(guild_id=notification.guild_id, user_id=owner_id)

        if notification.guild_id is None:
            self.logger.debug("Creator join without guild ignored", extra=extra)
            return

        guild = self.platform.resolve_group(notification.guild_id)
        if guild is None:
            self.logger.warning("Guild not found in cache", extra=extra)
            return

        try:
            await ensure_manage_capability(self.platform, guild)
        except PermissionDenied as e:
            self.logger.error("%s", e, extra=extra)
            return

        parent_category_id = self.platform.parent_category_id(self.creator_channel_id)

        async with self._owner_guard(owner_id):
            if not await self._replace_existing_channel(owner_id):
                return

            try:
                result = await self.provisioner.create_temporary_channel(
                    guild,
                    owner_id,
                    parent_category_id,
                    fallback_name=notification.user_name,
                )
            except (PlatformRequestFailed, ResolutionFailed) as e:
                self.logger.error("Error creating channel: %s", e, extra=extra)
                return

        if not result.relocated:
            # Deliberate safeguard: a channel its owner never reached is not
            # kept forever, it gets the normal empty-channel grace period.
            await self.evaluate_empty_channel(result.channel_id)

    async def _replace_existing_channel(self, owner_id: int) -> bool:
        """
        Delete the channel ``owner_id`` already owns, if any.

        Returns False if the old channel could not be deleted; the caller must
        then not create another one.
        """
        async with self.registry.lock:
            old_channel_id = self.registry.find_by_owner(owner_id)
            record = self.registry.get(old_channel_id)
            if old_channel_id is None or record is None:
                return True
            self.scheduler.cancel(record.pending_deletion)
            record.pending_deletion = None
            record.replacing = True

        # The REST call runs without the registry lock; the owner guard keeps
        # this owner's creations serialized.
        extra = log_extra(user_id=owner_id, channel_id=old_channel_id)
        try:
            await self.platform.delete_channel(old_channel_id)
        except PlatformRequestFailed as e:
            async with self.registry.lock:
                record.replacing = False
            self.logger.error(
                "Could not delete previous channel, keeping it: %s", e, extra=extra
            )
            return False

        async with self.registry.lock:
            if self.registry.get(old_channel_id) is record:
                self.registry.remove(old_channel_id)
                self.scheduler.cancel(record.pending_deletion)
        self.logger.info("Replaced previous temporary channel", extra=extra)
        return True

    # ------------------------------------------------------------------
    # Phase 2: leave-tracked
    # ------------------------------------------------------------------

    async def evaluate_empty_channel(self, channel_id: int, *, restart: bool = True) -> bool:
        """
        Restart the countdown of a tracked channel if it is empty.

        Emptiness is checked while holding the registry lock so two concurrent
        leaves cannot both schedule. With ``restart=False`` a running countdown
        is left alone. Returns True if a countdown was started.
        """
        async with self.registry.lock:
            record = self.registry.get(channel_id)
            if record is None or record.replacing:
                return False
            if not restart and record.pending_deletion is not None:
                return False

            try:
                members = await self.platform.list_members_present(channel_id)
            except (ResolutionFailed, PlatformRequestFailed) as e:
                self.logger.warning(
                    "Could not list members of tracked channel: %s",
                    e,
                    extra=log_extra(channel_id=channel_id),
                )
                return False

            if members:
                return False

            self.scheduler.cancel(record.pending_deletion)
            name = self.platform.channel_name(channel_id) or str(channel_id)
            record.pending_deletion = self.scheduler.schedule_deletion(channel_id, name)
            return True

    # ------------------------------------------------------------------
    # Phase 3: join-tracked
    # ------------------------------------------------------------------

    async def _handle_tracked_join(self, channel_id: int) -> None:
        async with self.registry.lock:
            record = self.registry.get(channel_id)
            if record is None or record.pending_deletion is None:
                return
            self.scheduler.cancel(record.pending_deletion)
            record.pending_deletion = None
        self.logger.info(
            "Deletion cancelled, someone joined the channel",
            extra=log_extra(channel_id=channel_id),
        )

    # ------------------------------------------------------------------
    # External deletes and reconciliation
    # ------------------------------------------------------------------

    async def handle_channel_deleted(self, channel_id: int) -> None:
        """Forget a tracked channel that was deleted outside the bot."""
        async with self.registry.lock:
            record = self.registry.remove(channel_id)
            if record is None:
                return
            self.scheduler.cancel(record.pending_deletion)
        self.logger.info(
            "Tracked channel deleted externally",
            extra=log_extra(channel_id=channel_id, owner_id=str(record.owner_id)),
        )

    async def reconcile(self) -> int:
        """
        Re-evaluate tracked channels that have no countdown running.

        Drops records of channels that no longer exist and schedules deletion
        of channels that are empty, e.g. after a failed delete. Idempotent.

        Returns:
            Number of records dropped or countdowns started.
        """
        changed = 0
        for channel_id, record in self.registry.snapshot():
            if record.pending_deletion is not None:
                continue
            if not self.platform.channel_exists(channel_id):
                async with self.registry.lock:
                    if self.registry.get(channel_id) is record:
                        self.registry.remove(channel_id)
                        changed += 1
                self.logger.info(
                    "Dropped record of vanished channel",
                    extra=log_extra(channel_id=channel_id),
                )
                continue
            if await self.evaluate_empty_channel(channel_id, restart=False):
                changed += 1
        return changed

    async def _reconcile_loop(self) -> None:
        while True:
            await asyncio.sleep(self.reconcile_interval)
            try:
                changed = await self.reconcile()
                if changed:
                    self.logger.info("Reconciliation updated %s channel(s)", changed)
            except Exception as e:
                self.logger.exception("Error in reconciliation sweep", exc_info=e)

    async def health_check(self) -> dict[str, Any]:
        base_health = await super().health_check()
        base_health.update(
            {
                "creator_channel_id": self.creator_channel_id,
                "tracked_channels": len(self.registry),
                "pending_deletions": self.registry.pending_count(),
                "active_timers": self.scheduler.active_timers,
            }
        )
        return base_health
