"""
Async client for single work-item REST calls.

Covers the three single-record operations the sync helpers fan out over:
fetching one work item, running one WIQL query and patching one work item.
Every failure is raised as ``TransportError`` with the httpx exception
chained as ``__cause__``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from adosync.core.batch.coalescer import JSON_PATCH_CONTENT_TYPE
from adosync.core.config.models import SyncConfig
from adosync.core.exceptions import ResponseFormatError, TransportError
from adosync.core.http import build_async_client
from adosync.core.workitems.models import WorkItemUpdate

logger = logging.getLogger(__name__)


class WorkItemClient:
    """
    Azure DevOps work item tracking client.

    API Endpoints:
    - Get: GET /{org}/{project}/_apis/wit/workitems/{id}
    - Update: PATCH /{org}/{project}/_apis/wit/workitems/{id}
    - Query: POST /{org}/{project}/_apis/wit/wiql

    Example:
        >>> async with WorkItemClient("contoso", "web", pat) as client:
        ...     item = await client.get_work_item(42)
        >>> item["fields"]["System.Title"]
        'Fix login redirect'
    """

    def __init__(
        self,
        organization: str,
        project: str,
        pat: str,
        *,
        api_version: str = "7.0",
        base_url: str = "https://dev.azure.com",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        An injected ``client`` is used as-is and must already carry
        authentication; ``pat`` only builds the default client.
        """
        self.organization = organization
        self.project = project
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or build_async_client(pat, timeout=timeout)

    @classmethod
    def from_config(
        cls, config: SyncConfig, *, client: httpx.AsyncClient | None = None
    ) -> WorkItemClient:
        """Build a client from configuration (raises ConfigError if credentials are missing)."""
        organization, project, pat = config.require_credentials()
        return cls(
            organization,
            project,
            pat,
            api_version=config.api_version,
            base_url=config.base_url,
            timeout=config.request_timeout,
            client=client,
        )

    async def __aenter__(self) -> WorkItemClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{self.organization}/{self.project}/_apis/{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        url = self._url(path)
        query = {"api-version": self.api_version, **(params or {})}
        try:
            response = await self._client.request(method, url, params=query, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise TransportError(
                f"{method} {path} failed: HTTP {status_code}",
                status_code=status_code,
                url=url,
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"{method} {path} failed: {e}", url=url) from e

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseFormatError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
                url=url,
            ) from e

    async def get_work_item(
        self,
        work_item_id: int,
        *,
        fields: list[str] | None = None,
        expand: str | None = None,
    ) -> dict[str, Any]:
        """
        Fetch one work item.

        Args:
            work_item_id: Work item id
            fields: Restrict the returned fields (e.g. ["System.Title"])
            expand: $expand value (None, Relations, Fields, Links, All)

        Raises:
            TransportError: On network failure or non-2xx response
        """
        params: dict[str, Any] = {}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["$expand"] = expand
        logger.debug(f"Fetching work item {work_item_id}")
        result: dict[str, Any] = await self._request(
            "GET", f"wit/workitems/{work_item_id}", params=params
        )
        return result

    async def query_by_wiql(self, query: str, *, top: int | None = None) -> dict[str, Any]:
        """
        Run a WIQL query.

        Args:
            query: WIQL text, e.g. "SELECT [System.Id] FROM WorkItems"
            top: Maximum number of results

        Returns:
            The query result (``workItems`` holds the matching references)
        """
        params: dict[str, Any] = {}
        if top is not None:
            params["$top"] = top
        result: dict[str, Any] = await self._request(
            "POST", "wit/wiql", params=params, json={"query": query}
        )
        return result

    async def update_work_item(self, update: WorkItemUpdate) -> dict[str, Any]:
        """Apply a JSON-patch update to one work item."""
        result: dict[str, Any] = await self._request(
            "PATCH",
            f"wit/workitems/{update.id}",
            content=json.dumps(update.patch_document()),
            headers={"Content-Type": JSON_PATCH_CONTENT_TYPE},
        )
        return result


__all__ = ["WorkItemClient"]
