"""Asynchronous programming utilities and helpers.

Bridges blocking HTTP calls onto worker threads and keeps fire-and-forget
tasks from losing their exceptions.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Coroutine
from typing import Any, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# Strong references to fire-and-forget tasks until they finish
_background_tasks: set[asyncio.Task[Any]] = set()


async def run_in_thread(func: Callable[P, R], *args: P.args, **kwargs: P.kwargs) -> R:
    """Run a synchronous function in a separate thread.

    Consistent wrapper around asyncio.to_thread.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


def log_task_exception(
    task: asyncio.Task[Any],
    msg: str = "Background task failed",
    logger_instance: logging.Logger | None = None,
) -> None:
    """Callback for add_done_callback to log task exceptions."""
    log = logger_instance or logger
    try:
        if not task.cancelled():
            task.result()
    except asyncio.CancelledError:
        pass
    except Exception as e:
        log.warning(f"{msg}: {e}", exc_info=True)


def task_callback(
    msg: str = "Background task failed", logger_instance: logging.Logger | None = None
) -> Callable[[asyncio.Task[Any]], None]:
    """Create a callback for add_done_callback with custom message.

    Example:
        task = asyncio.create_task(work())
        task.add_done_callback(task_callback("Reload failed", my_logger))
    """
    return functools.partial(log_task_exception, msg=msg, logger_instance=logger_instance)


def spawn(
    coro: Coroutine[Any, Any, Any],
    msg: str = "Background task failed",
    logger_instance: logging.Logger | None = None,
) -> asyncio.Task[Any]:
    """Schedule a coroutine on the running loop and log its failure.

    The task is referenced until done so it cannot be garbage collected
    mid-flight.
    """
    task = asyncio.get_running_loop().create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    task.add_done_callback(task_callback(msg, logger_instance))
    return task
