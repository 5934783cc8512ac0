"""
Pytest configuration and shared fixtures.

Provides a fake Azure DevOps REST API served through ``httpx.MockTransport``,
a ready-made SyncConfig, and environment isolation for config tests.
"""

import asyncio
import json
import re
from typing import Any

import httpx
import pytest

from adosync.core.config import ENV_OVERRIDES, clear_cache
from adosync.core.config.models import SyncConfig
from adosync.core.http import build_async_client

WORK_ITEM_URL = re.compile(r"/_apis/wit/workitems/(\d+)")


class FakeAzureDevOps:
    """
    In-memory stand-in for the work item tracking and $batch endpoints.

    Attributes:
        requests: Every request received, in order
        batch_calls: Sub-request lists of each $batch call, in order
        failing_ids: Work item ids answered with 404
        raw_ids: Work item ids whose body is not JSON
        slow_ids: Work item id -> seconds to wait before answering
        fail_batch_calls: 1-based $batch call numbers answered with 503
        fail_batch_containing: $batch calls containing this id get 503
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.batch_calls: list[list[dict[str, Any]]] = []
        self.failing_ids: set[int] = set()
        self.raw_ids: set[int] = set()
        self.slow_ids: dict[int, float] = {}
        self.fail_batch_calls: set[int] = set()
        self.fail_batch_containing: int | None = None

    @staticmethod
    def work_item(work_item_id: int) -> dict[str, Any]:
        return {
            "id": work_item_id,
            "rev": 1,
            "fields": {"System.Title": f"Item {work_item_id}", "System.State": "New"},
        }

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, pat: str = "test-pat") -> httpx.AsyncClient:
        """Authenticated client routed to this fake, as built for real calls."""
        return build_async_client(pat, transport=self.transport())

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("batch"):
            return self._batch(request)

        if path.endswith("/_apis/wit/wiql"):
            query = json.loads(request.content)["query"]
            if "FAIL" in query:
                return httpx.Response(400, json={"message": "Invalid WIQL"})
            return httpx.Response(
                200,
                json={"queryType": "flat", "workItems": [{"id": 1}, {"id": 2}]},
            )

        match = WORK_ITEM_URL.search(path)
        if match:
            work_item_id = int(match.group(1))
            if work_item_id in self.slow_ids:
                await asyncio.sleep(self.slow_ids[work_item_id])
            if work_item_id in self.failing_ids:
                return httpx.Response(404, json={"message": f"Work item {work_item_id} not found"})
            if request.method == "PATCH":
                return httpx.Response(200, json=self._patched(work_item_id, request.content))
            return httpx.Response(200, json=self.work_item(work_item_id))

        return httpx.Response(404, json={"message": "Unknown route"})

    def _patched(self, work_item_id: int, content: bytes | str) -> dict[str, Any]:
        operations = json.loads(content) if content else []
        item = self.work_item(work_item_id)
        item["rev"] = 2
        for operation in operations:
            item["fields"][operation["path"].removeprefix("/fields/")] = operation.get("value")
        return item

    def _batch(self, request: httpx.Request) -> httpx.Response:
        sub_requests = json.loads(request.content)["requests"]
        self.batch_calls.append(sub_requests)

        ids = [int(WORK_ITEM_URL.search(sub["url"]).group(1)) for sub in sub_requests]
        if len(self.batch_calls) in self.fail_batch_calls or (
            self.fail_batch_containing is not None and self.fail_batch_containing in ids
        ):
            return httpx.Response(503, text="Service Unavailable")

        responses = []
        for sub, work_item_id in zip(sub_requests, ids):
            if work_item_id in self.failing_ids:
                code, body = 404, json.dumps({"message": "not found"})
            elif work_item_id in self.raw_ids:
                code, body = 200, "<html>gateway hiccup</html>"
            elif sub["method"] == "PATCH":
                code, body = 200, json.dumps(self._patched(work_item_id, json.dumps(sub["body"])))
            else:
                code, body = 200, json.dumps(self.work_item(work_item_id))
            responses.append({"id": sub["id"], "code": code, "headers": {}, "body": body})

        return httpx.Response(200, json={"count": len(responses), "responses": responses})


@pytest.fixture
def fake_ado():
    """Provide a fresh fake Azure DevOps API."""
    return FakeAzureDevOps()


@pytest.fixture
def sync_config():
    """Provide a SyncConfig with credentials and progress disabled."""
    return SyncConfig(
        organization="contoso",
        project="web",
        pat="test-pat",
        max_workers=4,
        show_progress=False,
    )


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user config, credentials and the config cache out of every test."""
    for name in ENV_OVERRIDES:
        # setenv first so teardown also removes values set by load_layered_env
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    clear_cache()
    yield
    clear_cache()
