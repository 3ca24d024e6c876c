"""Utilities for managing background tasks."""

import asyncio
import logging
from typing import Coroutine, Any

logger = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage collected mid-flight.
_background_tasks: set[asyncio.Task] = set()


def create_background_task(coro: Coroutine[Any, Any, Any], task_name: str = "background_task") -> asyncio.Task:
    """
    Create a background task with proper error handling.

    Exceptions in the task will be logged instead of silently lost.
    """
    async def _wrapped_task():
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Error in background task '{task_name}': {e}")

    task = asyncio.create_task(_wrapped_task(), name=task_name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def wait_for_background_tasks() -> None:
    """Wait until every currently scheduled background task has finished."""
    while _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)
