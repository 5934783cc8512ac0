"""Tests for WorkItemSyncService against the fake Azure DevOps API."""

import base64

import pytest

from adosync.core.exceptions import ConfigError, TransportError
from adosync.core.config.models import SyncConfig
from adosync.core.fanout import FanOutExecutor
from adosync.core.workitems import WorkItemSyncService, WorkItemUpdate


@pytest.fixture
def service(sync_config, fake_ado):
    return WorkItemSyncService.from_config(sync_config, transport=fake_ado.transport())


class TestServiceConstruction:
    """Test building the service from config."""

    def test_requires_credentials(self) -> None:
        """Test that missing credentials raise ConfigError."""
        with pytest.raises(ConfigError):
            WorkItemSyncService.from_config(SyncConfig(organization="contoso", project="web"))

    def test_executor_built_from_config(self, fake_ado) -> None:
        """Test that config drives the default executor options."""
        config = SyncConfig(
            organization="contoso",
            project="web",
            pat="pat",
            max_workers=3,
            item_timeout=12,
            bounded_concurrency=True,
            retry={"max_retries": 2},
        )

        service = WorkItemSyncService.from_config(config, transport=fake_ado.transport())

        assert service.executor.options.max_workers == 3
        assert service.executor.options.timeout == 12
        assert service.executor.options.bounded is True
        assert service.executor.retry_policy.max_retries == 2
        assert service.coalescer.retry_policy.max_retries == 2

    @pytest.mark.asyncio
    async def test_requests_carry_pat_auth(self, service, fake_ado) -> None:
        """Test that single and batch requests authenticate with the PAT."""
        expected = "Basic " + base64.b64encode(b":test-pat").decode()

        await service.fetch_work_items([1])
        await service.batch_fetch_work_items([2])

        assert [r.headers["authorization"] for r in fake_ado.requests] == [expected] * 2

    @pytest.mark.asyncio
    async def test_client_and_coalescer_share_http_client(self, service) -> None:
        """Test that aclose() closes the shared HTTP client once."""
        assert service.client._client is service.coalescer._client

        async with service:
            pass

        assert service.client._client.is_closed


class TestFetchWorkItems:
    """Test fan-out fetch by id."""

    @pytest.mark.asyncio
    async def test_fetch_in_order(self, service, fake_ado) -> None:
        """Test results align with ids."""
        fake_ado.slow_ids = {1: 0.03}

        items = await service.fetch_work_items([1, 2, 3])

        assert [item["id"] for item in items] == [1, 2, 3]
        assert len(fake_ado.requests) == 3

    @pytest.mark.asyncio
    async def test_failed_fetch_is_none(self, service, fake_ado, caplog) -> None:
        """Test that a 404 for one id leaves the others intact."""
        fake_ado.failing_ids = {2}

        items = await service.fetch_work_items([1, 2, 3])

        assert items[0]["id"] == 1
        assert items[1] is None
        assert items[2]["id"] == 3
        assert "Failed to fetch 1 of 3 work items" in caplog.text

    @pytest.mark.asyncio
    async def test_fetch_timeout_from_config(self, sync_config, fake_ado) -> None:
        """Test that fetch_timeout bounds each fetch."""
        sync_config.fetch_timeout = 0.05
        fake_ado.slow_ids = {2: 5.0}
        service = WorkItemSyncService.from_config(sync_config, transport=fake_ado.transport())

        items = await service.fetch_work_items([1, 2, 3])

        assert items[1] is None
        assert service.summarize(items).succeeded == 2

    @pytest.mark.asyncio
    async def test_progress_reporter(self, service) -> None:
        """Test that an explicit reporter sees every item."""
        calls = []

        await service.fetch_work_items(
            [1, 2, 3, 4], progress=lambda current, total: calls.append((current, total))
        )

        assert calls == [(1, 4), (2, 4), (3, 4), (4, 4)]


class TestRunQueries:
    """Test fan-out WIQL queries."""

    @pytest.mark.asyncio
    async def test_run_queries(self, service) -> None:
        """Test that a failing query yields None in its slot."""
        results = await service.run_queries(
            ["SELECT [System.Id] FROM WorkItems", "FAIL", "SELECT [System.Title] FROM WorkItems"]
        )

        assert results[0]["workItems"] == [{"id": 1}, {"id": 2}]
        assert results[1] is None
        assert results[2] is not None


class TestUpdates:
    """Test fan-out and batched updates."""

    @pytest.mark.asyncio
    async def test_update_work_items(self, service, fake_ado) -> None:
        """Test one PATCH per update."""
        fake_ado.failing_ids = {2}
        updates = [
            WorkItemUpdate.set_fields(1, {"System.State": "Active"}),
            WorkItemUpdate.set_fields(2, {"System.State": "Active"}),
        ]

        results = await service.update_work_items(updates)

        assert results[0]["fields"]["System.State"] == "Active"
        assert results[1] is None
        assert [r.method for r in fake_ado.requests] == ["PATCH", "PATCH"]

    @pytest.mark.asyncio
    async def test_batch_update_work_items(self, service, fake_ado) -> None:
        """Test updates through a single $batch envelope."""
        updates = [WorkItemUpdate.set_fields(i, {"System.State": "Closed"}) for i in (5, 6)]

        result = await service.batch_update_work_items(updates)

        assert len(fake_ado.batch_calls) == 1
        assert [v["fields"]["System.State"] for v in result.ok_values()] == ["Closed", "Closed"]


class TestBatchFetch:
    """Test $batch-backed fetch helpers."""

    @pytest.mark.asyncio
    async def test_batch_fetch_sequential_envelopes(self, sync_config, fake_ado) -> None:
        """Test that max_batch_size from config sizes the envelopes."""
        sync_config.max_batch_size = 2
        service = WorkItemSyncService.from_config(sync_config, transport=fake_ado.transport())

        result = await service.batch_fetch_work_items([1, 2, 3, 4, 5])

        assert [len(call) for call in fake_ado.batch_calls] == [2, 2, 1]
        assert [item["id"] for item in result.values()] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_batch_fetch_transport_failure_raises(self, service, fake_ado) -> None:
        """Test that an envelope failure propagates from the sequential path."""
        fake_ado.fail_batch_calls = {1}

        with pytest.raises(TransportError):
            await service.batch_fetch_work_items([1, 2])

    @pytest.mark.asyncio
    async def test_parallel_batch_isolates_failed_envelope(self, sync_config, fake_ado) -> None:
        """Test that one failing envelope only blanks its own ids."""
        sync_config.max_batch_size = 2
        fake_ado.fail_batch_containing = 3
        service = WorkItemSyncService.from_config(sync_config, transport=fake_ado.transport())

        items = await service.parallel_batch_fetch_work_items([1, 2, 3, 4, 5])

        assert [item["id"] if item else None for item in items] == [1, 2, None, None, 5]
        assert len(fake_ado.batch_calls) == 3

    @pytest.mark.asyncio
    async def test_parallel_batch_error_sub_response_is_none(self, service, fake_ado) -> None:
        """Test that a 404 sub-response counts as failed, as on the sequential path."""
        fake_ado.failing_ids = {2}

        parallel = await service.parallel_batch_fetch_work_items([1, 2, 3])
        sequential = (await service.batch_fetch_work_items([1, 2, 3])).ok_values()

        assert parallel[1] is None
        assert parallel == sequential
        assert service.summarize(parallel).failed == 1

    @pytest.mark.asyncio
    async def test_parallel_batch_empty(self, service, fake_ado) -> None:
        """Test that no ids means no requests."""
        assert await service.parallel_batch_fetch_work_items([]) == []
        assert fake_ado.requests == []


class TestSummarize:
    """Test result summaries."""

    def test_summarize(self) -> None:
        """Test counting None entries as failures."""
        summary = WorkItemSyncService.summarize([{"id": 1}, None])
        assert (summary.total, summary.succeeded, summary.failed) == (2, 1, 1)

    def test_custom_executor(self, sync_config, fake_ado) -> None:
        """Test that an injected executor is used as-is."""
        executor = FanOutExecutor()
        service = WorkItemSyncService.from_config(sync_config, transport=fake_ado.transport())
        custom = WorkItemSyncService(service.client, service.coalescer, sync_config, executor=executor)
        assert custom.executor is executor
