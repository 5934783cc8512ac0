"""
Work-item sync service.

Thin compositions of the batch coalescer and the fan-out executor that
sync workflows and CLI commands call:

- ``fetch_work_items``: one GET per id, fanned out
- ``run_queries``: one WIQL query per entry, fanned out
- ``batch_fetch_work_items`` / ``batch_update_work_items``: $batch envelopes,
  sent sequentially
- ``parallel_batch_fetch_work_items``: $batch envelopes fanned out

Fan-out helpers return lists aligned with their input where ``None`` marks
a failed entry; callers count and report those rather than crash.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

import httpx

from adosync.core.batch.coalescer import BatchCoalescer
from adosync.core.batch.models import BatchResult
from adosync.core.chunking import chunk_sequence
from adosync.core.config.models import SyncConfig
from adosync.core.fanout.executor import FanOutExecutor
from adosync.core.fanout.models import FanOutOptions
from adosync.core.fanout.progress import ProgressReporter, RichProgressReporter
from adosync.core.http import build_async_client
from adosync.core.workitems.client import WorkItemClient
from adosync.core.workitems.models import SyncSummary, WorkItemUpdate

logger = logging.getLogger(__name__)


class WorkItemSyncService:
    """
    Bulk fetch, query and update of work items.

    Example:
        >>> async with WorkItemSyncService.from_config(load_config()) as service:
        ...     items = await service.fetch_work_items([1, 2, 3])
        >>> service.summarize(items).failed
        0
    """

    def __init__(
        self,
        client: WorkItemClient,
        coalescer: BatchCoalescer,
        config: SyncConfig | None = None,
        *,
        executor: FanOutExecutor | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: Single-record REST client
            coalescer: $batch coalescer
            config: Timeouts, worker count and progress defaults
            executor: Fan-out executor (built from config when omitted)
            http_client: Shared HTTP client closed by ``aclose()``
        """
        self.config = config or SyncConfig()
        self.client = client
        self.coalescer = coalescer
        self.executor = executor or FanOutExecutor(
            FanOutOptions(
                max_workers=self.config.max_workers,
                timeout=self.config.item_timeout,
                bounded=self.config.bounded_concurrency,
            ),
            retry_policy=self.config.retry.build_policy(),
        )
        self._http_client = http_client

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> WorkItemSyncService:
        """
        Build a service whose client and coalescer share one HTTP client.

        Raises:
            ConfigError: If organization, project or pat is missing
        """
        organization, project, pat = config.require_credentials()
        http_client = build_async_client(
            pat, timeout=config.request_timeout, transport=transport
        )
        client = WorkItemClient.from_config(config, client=http_client)
        coalescer = BatchCoalescer(
            organization,
            project,
            pat,
            max_batch_size=config.max_batch_size,
            api_version=config.api_version,
            base_url=config.base_url,
            client=http_client,
            retry_policy=config.retry.build_policy(),
        )
        return cls(client, coalescer, config, http_client=http_client)

    async def __aenter__(self) -> WorkItemSyncService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()

    def _progress(
        self, show_progress: bool | None, progress: ProgressReporter | None, description: str
    ) -> ProgressReporter | None:
        if progress is not None:
            return progress
        enabled = self.config.show_progress if show_progress is None else show_progress
        return RichProgressReporter(description) if enabled else None

    async def fetch_work_items(
        self,
        ids: Sequence[int],
        *,
        show_progress: bool | None = None,
        progress: ProgressReporter | None = None,
    ) -> list[dict[str, Any] | None]:
        """
        Fetch work items one request per id, concurrently.

        Args:
            ids: Work item ids
            show_progress: Override config.show_progress
            progress: Explicit progress reporter

        Returns:
            Work items aligned with ``ids``; ``None`` where the fetch failed
            or exceeded ``config.fetch_timeout``
        """

        async def fetch_one(work_item_id: int, options: FanOutOptions) -> dict[str, Any]:
            return await self.client.get_work_item(work_item_id)

        results = await self.executor.run(
            list(ids),
            fetch_one,
            {"timeout": self.config.fetch_timeout},
            progress=self._progress(show_progress, progress, "Fetching work items"),
        )
        summary = self.summarize(results)
        if summary.failed:
            logger.warning(f"Failed to fetch {summary.failed} of {summary.total} work items")
        return results

    async def run_queries(self, queries: Sequence[str]) -> list[dict[str, Any] | None]:
        """
        Run WIQL queries concurrently.

        Returns:
            Query results aligned with ``queries``; ``None`` where a query
            failed or exceeded ``config.query_timeout``
        """

        async def run_one(query: str, options: FanOutOptions) -> dict[str, Any]:
            return await self.client.query_by_wiql(query)

        return await self.executor.run(
            list(queries), run_one, {"timeout": self.config.query_timeout}
        )

    async def update_work_items(
        self,
        updates: Sequence[WorkItemUpdate],
        *,
        show_progress: bool | None = None,
        progress: ProgressReporter | None = None,
    ) -> list[dict[str, Any] | None]:
        """Apply updates one request per work item, concurrently."""

        async def update_one(update: WorkItemUpdate, options: FanOutOptions) -> dict[str, Any]:
            return await self.client.update_work_item(update)

        return await self.executor.run(
            list(updates),
            update_one,
            progress=self._progress(show_progress, progress, "Updating work items"),
        )

    async def batch_fetch_work_items(self, ids: Iterable[int]) -> BatchResult:
        """Fetch work items through sequential $batch envelopes."""
        return await self.coalescer.fetch_work_items(ids)

    async def batch_update_work_items(self, updates: Iterable[WorkItemUpdate]) -> BatchResult:
        """Apply updates through sequential $batch envelopes."""
        return await self.coalescer.update_work_items(updates)

    async def parallel_batch_fetch_work_items(
        self,
        ids: Sequence[int],
        *,
        progress: ProgressReporter | None = None,
    ) -> list[Any | None]:
        """
        Fetch work items through $batch envelopes sent concurrently.

        Ids are grouped into envelope-sized groups and each group is one
        fan-out item. A group whose envelope fails contributes ``None`` for
        every id in it; other groups are unaffected.

        Returns:
            Work items aligned with ``ids``; ``None`` where the fetch failed
            at either the envelope or the sub-response level
        """
        groups = chunk_sequence(list(ids), self.coalescer.max_batch_size)

        async def fetch_group(group: list[int], options: FanOutOptions) -> list[Any]:
            result = await self.coalescer.fetch_work_items(group)
            return result.ok_values()

        group_results = await self.executor.run(
            groups, fetch_group, {"timeout": self.config.request_timeout}, progress=progress
        )

        flattened: list[Any | None] = []
        for group, values in zip(groups, group_results):
            if values is None:
                flattened.extend([None] * len(group))
            else:
                flattened.extend(values)
        return flattened

    @staticmethod
    def summarize(results: list[Any]) -> SyncSummary:
        """Count succeeded and failed (``None``) entries."""
        return SyncSummary.from_results(results)


__all__ = ["WorkItemSyncService"]
