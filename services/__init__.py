"""
Services package for the temporary voice bot.

Contains the channel lifecycle components: the registry of tracked
channels, the deletion scheduler, the channel provisioner, and the voice
service that dispatches voice state updates to them.
"""

from .base import BaseService
from .channel_provisioner import ChannelProvisioner, ProvisionResult
from .channel_registry import ChannelRecord, ChannelRegistry
from .deletion_scheduler import DeletionScheduler, DeletionTask
from .service_container import ServiceContainer
from .voice_service import TempVoiceService

__all__ = [
    "BaseService",
    "ChannelProvisioner",
    "ChannelRecord",
    "ChannelRegistry",
    "DeletionScheduler",
    "DeletionTask",
    "ProvisionResult",
    "ServiceContainer",
    "TempVoiceService",
]
