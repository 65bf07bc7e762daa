"""
Task utilities for managing asyncio tasks and background operations.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from utils.logging import get_logger

logger = get_logger(__name__)


def spawn(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
    """
    Spawn a coroutine as a background task.

    Creates an asyncio task and logs any exception it finishes with.
    Cancellation is not logged as a failure.

    Args:
        coro: The coroutine to spawn as a task
        name: Optional task name, shown in logs

    Returns:
        The created asyncio task
    """
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_log_task_exception)
    return task


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Log exceptions from completed tasks."""
    if task.cancelled():
        logger.debug("Task %s cancelled", task.get_name())
        return
    exc = task.exception()
    if exc:
        logger.error(
            "Task %s failed with exception", task.get_name(), exc_info=exc
        )


async def cancel_and_wait(tasks: "list[asyncio.Task[Any]] | set[asyncio.Task[Any]]") -> None:
    """Cancel the given tasks and wait for all of them to finish."""
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
