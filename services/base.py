"""
Lifecycle shared by the long-lived voice services.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from utils.logging import get_logger


class BaseService(ABC):
    """
    A service is started once by the container and stopped once on close.

    Repeated ``initialize()`` calls are no-ops, concurrent callers wait on
    the same lock, and ``shutdown()`` logs failures instead of raising so the
    remaining services still get stopped.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = get_logger(f"services.{name}")
        self._initialized = False
        self._lifecycle_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        async with self._lifecycle_lock:
            if self._initialized:
                return
            self.logger.debug("Starting %s", self.name)
            try:
                await self._initialize_impl()
            except Exception:
                self.logger.exception("%s failed to start", self.name)
                raise
            self._initialized = True
            self.logger.info("%s started", self.name)

    async def shutdown(self) -> None:
        async with self._lifecycle_lock:
            if not self._initialized:
                return
            self._initialized = False
            try:
                await self._shutdown_impl()
            except Exception:
                self.logger.exception("%s did not stop cleanly", self.name)
            else:
                self.logger.info("%s stopped", self.name)

    @abstractmethod
    async def _initialize_impl(self) -> None:
        ...

    async def _shutdown_impl(self) -> None:  # noqa: B027
        return None

    async def health_check(self) -> dict[str, Any]:
        """Base health report; subclasses extend it with their own counters."""
        return {
            "service": self.name,
            "initialized": self._initialized,
            "status": "healthy" if self._initialized else "not_initialized",
        }
