"""Named deadlines for run phases.

``with_timeout`` races an operation against a timer. When the timer wins, the
operation is cancelled and abandoned (never awaited again) and a
:class:`PhaseTimeout` carrying the phase label is raised. Nested calls need no
coordination: when an outer deadline fires, the outer task is cancelled while
it waits on the inner race, and the inner operation is cancelled with it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from proofpack.core.exceptions import PhaseTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard_result(task: asyncio.Future[Any]) -> None:
    # Abandoned operations may still fail later; retrieve the exception so the
    # loop does not report it as never retrieved.
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            logger.debug("Abandoned operation finished with %r", exc)


async def with_timeout(
    label: str,
    timeout_ms: int,
    operation: Callable[[], Awaitable[T]],
) -> T:
    """Run ``operation()`` and return its result, or raise PhaseTimeout(label)."""
    task = asyncio.ensure_future(operation())
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        task.add_done_callback(_discard_result)
        raise

    if task in done:
        return task.result()

    logger.debug("phase:%s exceeded %dms, abandoning", label, timeout_ms)
    task.cancel()
    task.add_done_callback(_discard_result)
    raise PhaseTimeout(label, timeout_ms)
