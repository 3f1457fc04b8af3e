"""Background-task bookkeeping for fire-and-forget coroutines.

``asyncio`` only keeps a weak reference to running tasks, so a task created
with :func:`asyncio.create_task` and then dropped can be garbage-collected
before it finishes.  :func:`fire_and_forget` keeps a strong reference in a
module-level set until the task completes, then discards it.

Failures of background work are logged at debug level and otherwise
ignored: callers use this only for best-effort side effects such as
bumping a chat session's ``last_seen_at``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Strong references to in-flight background tasks.
_BACKGROUND_TASKS: set[asyncio.Task[Any]] = set()


def fire_and_forget(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
    """Schedule *coro* on the running loop without awaiting it.

    Parameters
    ----------
    coro:
        The coroutine to run.
    name:
        Optional task name; also used as the log context on failure.

    Returns
    -------
    asyncio.Task
        The scheduled task.  Callers normally ignore it.
    """
    task = asyncio.create_task(coro, name=name)
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(_on_background_done)
    return task


def pending_background_tasks() -> int:
    """Number of background tasks that have not finished yet."""
    return len(_BACKGROUND_TASKS)


def _on_background_done(task: asyncio.Task[Any]) -> None:
    _BACKGROUND_TASKS.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.debug(
            "background_task_failed",
            task=task.get_name(),
            error_type=type(exc).__name__,
            error=str(exc),
        )
