"""
Chunking and timeout helpers shared by the coalescer and the executor.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Sequence
from typing import TypeVar

from adosync.core.exceptions import ItemError, ItemTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunk_sequence(items: Sequence[T], size: int) -> list[list[T]]:
    """
    Split a sequence into consecutive chunks of at most ``size`` elements.

    Order is preserved and no element is dropped or duplicated. The last
    chunk may be shorter.

    Args:
        items: Sequence to split
        size: Maximum chunk length (must be >= 1)

    Returns:
        List of chunks (empty list for empty input)

    Raises:
        ValueError: If size < 1

    Example:
        >>> chunk_sequence([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def chunk_size_for(total: int, workers: int) -> int:
    """
    Chunk length that spreads ``total`` items across ``workers`` chunks.

    Example:
        >>> chunk_size_for(5, 2)
        3
        >>> chunk_size_for(0, 4)
        1
    """
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    return max(1, math.ceil(total / workers))


def _consume_outcome(task: asyncio.Future[object]) -> None:
    # Abandoned tasks may finish later; retrieve their outcome so asyncio
    # does not report "exception was never retrieved".
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned operation finished with error after timeout: {exc}")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    *,
    cancel: bool = True,
    index: int | None = None,
) -> T:
    """
    Race an awaitable against a timeout.

    Unlike ``asyncio.wait_for`` this returns control as soon as the timeout
    fires, even if the abandoned operation ignores cancellation.

    Args:
        awaitable: Operation to run
        timeout: Seconds to wait before giving up
        cancel: Cancel the operation when the timeout fires. When False the
            operation keeps running in the background and its result is
            discarded.
        index: Item position, attached to the timeout error

    Returns:
        The operation's result

    Raises:
        ItemTimeoutError: If the operation did not settle in time
        ItemError: If the operation cancelled itself
        Exception: Whatever the operation raised
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        try:
            return task.result()
        except asyncio.CancelledError as e:
            # The operation cancelled itself; cancellation of the caller
            # surfaces from asyncio.wait above instead.
            raise ItemError("Operation was cancelled", index=index) from e

    task.add_done_callback(_consume_outcome)
    if cancel:
        task.cancel()
    raise ItemTimeoutError(timeout, index=index)


__all__ = ["chunk_sequence", "chunk_size_for", "with_timeout"]
