import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure project root is on sys.path for CI environments where
# Python might not automatically include it (e.g., some GitHub
# Actions runners invoking pytest differently).
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config.config_loader import ConfigLoader
from services.channel_provisioner import ChannelProvisioner
from services.channel_registry import ChannelRegistry
from services.deletion_scheduler import DeletionScheduler
from services.voice_service import TempVoiceService
from tests.factories import CREATOR_CHANNEL_ID, TEST_GRACE_PERIOD, FakePlatform


@pytest.fixture(autouse=True)
def reset_config_loader():
    """Every test starts from an unloaded ConfigLoader."""
    ConfigLoader.reset()
    yield
    ConfigLoader.reset()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def registry() -> ChannelRegistry:
    return ChannelRegistry()


@pytest_asyncio.fixture
async def scheduler(platform, registry):
    scheduler = DeletionScheduler(platform, registry, grace_period=TEST_GRACE_PERIOD)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def provisioner(platform, registry) -> ChannelProvisioner:
    return ChannelProvisioner(platform, registry)


@pytest_asyncio.fixture
async def voice_service(platform, registry, provisioner, scheduler):
    """TempVoiceService wired to the in-memory platform, sweep disabled."""
    service = TempVoiceService(
        platform,
        registry,
        provisioner,
        scheduler,
        CREATOR_CHANNEL_ID,
        reconcile_interval=0,
    )
    await service.initialize()
    yield service
    await service.shutdown()
