"""
Progress reporters for fan-out runs.

A progress reporter is any callable taking ``(current, total)``. The
executor calls it once per completed item; reporters decide how often they
actually render.
"""

from __future__ import annotations

import time
from typing import Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)


class ProgressReporter(Protocol):
    """Protocol for progress callbacks."""

    def __call__(self, current: int, total: int) -> None:
        """Called after each completed item.

        Args:
            current: Items completed so far (1..total)
            total: Items in the run
        """
        ...


class NullProgressReporter:
    """Default no-op reporter."""

    def __call__(self, current: int, total: int) -> None:
        pass


class RichProgressReporter:
    """
    Renders a rich progress bar, redrawing at most every ``min_interval`` seconds.

    The bar starts on the first call and stops when ``current`` reaches
    ``total``, so one reporter can be reused for consecutive runs.

    Example:
        >>> reporter = RichProgressReporter("Fetching work items")
        >>> await executor.run(ids, fetch_one, options, progress=reporter)
    """

    def __init__(
        self,
        description: str = "Processing",
        *,
        console: Console | None = None,
        min_interval: float = 0.1,
        transient: bool = False,
    ) -> None:
        self.description = description
        self.console = console or Console(stderr=True)
        self.min_interval = min_interval
        self.transient = transient
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._last_render = float("-inf")
        self.renders = 0

    def _start(self, total: int) -> None:
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=30),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=self.transient,
        )
        self._progress.start()
        self._task_id = self._progress.add_task(self.description, total=total)
        self._last_render = float("-inf")

    def __call__(self, current: int, total: int) -> None:
        if self._progress is None:
            self._start(total)
        assert self._progress is not None and self._task_id is not None

        finished = current >= total
        now = time.monotonic()
        if not finished and now - self._last_render < self.min_interval:
            return

        self._last_render = now
        self.renders += 1
        self._progress.update(self._task_id, completed=current, total=total)

        if finished:
            self.close()

    def close(self) -> None:
        """Stop the live display if it is running."""
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task_id = None


__all__ = ["ProgressReporter", "NullProgressReporter", "RichProgressReporter"]
