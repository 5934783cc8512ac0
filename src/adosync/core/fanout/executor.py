"""
Fan-out executor: run one async operation per item with overlapping I/O.

The input list is split into ``ceil(len(items) / max_workers)``-sized
contiguous chunks. All chunks start together and all items inside a chunk
start together; with ``bounded=True`` a semaphore additionally caps the
number of items in flight at ``max_workers``.

Every item runs inside its own timeout race. A failing or timed-out item
produces ``None`` (and a log line) without affecting any other item, and
results are written into a pre-sized list so output order always matches
input order.

Example:
    >>> async def square(n, options):
    ...     return n * n
    >>> executor = FanOutExecutor()
    >>> await executor.run([1, 2, 3, 4, 5], square, FanOutOptions(max_workers=2))
    [1, 4, 9, 16, 25]
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

from adosync.core.chunking import chunk_sequence, chunk_size_for, with_timeout
from adosync.core.exceptions import ItemTimeoutError
from adosync.core.fanout.models import FanOutOptions, ItemOutcome, ItemState
from adosync.core.fanout.progress import (
    NullProgressReporter,
    ProgressReporter,
    RichProgressReporter,
)
from adosync.core.retry import RetryPolicy, call_with_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Processor = Callable[[T, FanOutOptions], Awaitable[R]]


class FanOutExecutor:
    """
    Runs an async processor over a list of items concurrently.

    Attributes:
        options: Default options for runs that do not pass their own
        retry_policy: Optional per-item retry policy (retries share the
            item's single timeout window)
    """

    def __init__(
        self,
        options: FanOutOptions | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.options = options or FanOutOptions()
        self.retry_policy = retry_policy

    def _resolve_options(
        self, options: FanOutOptions | Mapping[str, Any] | None
    ) -> FanOutOptions:
        if options is None:
            return self.options
        if isinstance(options, FanOutOptions):
            return options
        return FanOutOptions.model_validate({**self.options.model_dump(), **options})

    def _resolve_reporter(
        self, options: FanOutOptions, progress: ProgressReporter | None
    ) -> ProgressReporter:
        if progress is not None:
            return progress
        if options.show_progress:
            return RichProgressReporter()
        return NullProgressReporter()

    async def run(
        self,
        items: Sequence[T],
        processor: Processor[T, R],
        options: FanOutOptions | Mapping[str, Any] | None = None,
        *,
        progress: ProgressReporter | None = None,
    ) -> list[R | None]:
        """
        Process every item and return results in input order.

        Args:
            items: Items to process
            processor: ``async (item, options) -> result``
            options: Run options (FanOutOptions or a dict of overrides)
            progress: Reporter called with (completed, total) after each item.
                When omitted, a rich progress bar is used if
                ``options.show_progress`` is set.

        Returns:
            List the same length as ``items``; ``None`` where the item failed
            or timed out

        Raises:
            TypeError: If items is not a sequence or processor is not callable
        """
        outcomes = await self.run_detailed(items, processor, options, progress=progress)
        return [outcome.value if outcome.ok else None for outcome in outcomes]

    async def run_detailed(
        self,
        items: Sequence[T],
        processor: Processor[T, R],
        options: FanOutOptions | Mapping[str, Any] | None = None,
        *,
        progress: ProgressReporter | None = None,
    ) -> list[ItemOutcome]:
        """
        Like ``run()`` but returns an ``ItemOutcome`` per item.

        Outcomes carry the final state (succeeded, failed, timed_out), the
        error message and the duration, for callers that report counts.
        """
        if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
            raise TypeError(f"items must be a sequence, got {type(items).__name__}")
        if not callable(processor):
            raise TypeError("processor must be callable")

        opts = self._resolve_options(options)
        total = len(items)
        outcomes = [ItemOutcome(index=i) for i in range(total)]
        if total == 0:
            return outcomes

        chunk_size = chunk_size_for(total, opts.max_workers)
        chunks = chunk_sequence(items, chunk_size)
        gate = asyncio.Semaphore(opts.max_workers) if opts.bounded else None
        reporter = self._resolve_reporter(opts, progress)
        completed = 0

        logger.debug(
            f"Fan-out of {total} items in {len(chunks)} chunks of <= {chunk_size} "
            f"({'bounded' if opts.bounded else 'advisory'}, timeout {opts.timeout}s)"
        )

        async def attempt(index: int, item: T) -> R:
            return await with_timeout(
                call_with_policy(
                    self.retry_policy,
                    lambda: processor(item, opts),
                    label=f"item {index}",
                ),
                opts.timeout,
                cancel=opts.cancel_on_timeout,
                index=index,
            )

        async def run_item(index: int, item: T) -> None:
            nonlocal completed
            started = time.monotonic()
            try:
                if gate is not None:
                    async with gate:
                        value = await attempt(index, item)
                else:
                    value = await attempt(index, item)
                outcome = ItemOutcome(index=index, state=ItemState.SUCCEEDED, value=value)
            except ItemTimeoutError as e:
                logger.warning(f"Item {index} timed out: {e}")
                outcome = ItemOutcome(index=index, state=ItemState.TIMED_OUT, error=str(e))
            except Exception as e:
                logger.error(f"Processing failed for item {index}: {e}")
                outcome = ItemOutcome(index=index, state=ItemState.FAILED, error=str(e))

            outcome.duration_ms = int((time.monotonic() - started) * 1000)
            outcomes[index] = outcome
            completed += 1
            try:
                reporter(completed, total)
            except Exception:
                logger.warning("Progress reporter failed", exc_info=True)

        async def run_chunk(start: int, chunk: list[T]) -> None:
            await asyncio.gather(
                *(run_item(start + offset, item) for offset, item in enumerate(chunk))
            )

        await asyncio.gather(
            *(run_chunk(number * chunk_size, chunk) for number, chunk in enumerate(chunks))
        )
        return outcomes


async def process_parallel(
    items: Sequence[T],
    processor: Processor[T, R],
    options: FanOutOptions | Mapping[str, Any] | None = None,
    *,
    progress: ProgressReporter | None = None,
) -> list[R | None]:
    """Run a one-off fan-out with default executor settings."""
    return await FanOutExecutor().run(items, processor, options, progress=progress)


__all__ = ["FanOutExecutor", "Processor", "process_parallel"]
