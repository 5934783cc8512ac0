"""
Batch coalescer for the Azure DevOps $batch endpoint.

Groups many ``OperationDescriptor`` objects into envelopes of at most
``max_batch_size`` sub-requests, sends one POST per envelope and splits the
combined response back into one outcome per descriptor.

Envelopes are sent one after another. To overlap envelopes, wrap
``execute()`` calls in a ``FanOutExecutor`` run (see
``WorkItemSyncService.parallel_batch_fetch_work_items``).

Example:
    >>> async with BatchCoalescer("contoso", "web", pat) as coalescer:
    ...     result = await coalescer.fetch_work_items([1, 2, 3])
    >>> [item["id"] for item in result.values()]
    [1, 2, 3]
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

import httpx

from adosync.core.batch.models import (
    BatchEnvelope,
    BatchResult,
    OperationDescriptor,
    SubResponseOutcome,
    decode_sub_response,
)
from adosync.core.chunking import chunk_sequence
from adosync.core.config.models import PROVIDER_MAX_BATCH_SIZE
from adosync.core.exceptions import ResponseFormatError, TransportError
from adosync.core.http import build_async_client
from adosync.core.retry import RetryPolicy, call_with_policy

logger = logging.getLogger(__name__)

JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"


class BatchCoalescer:
    """
    Sends descriptors to the provider's batch endpoint in bounded envelopes.

    The provider identity (organization, project, token) is fixed at
    construction. The coalescer keeps no state between ``execute()`` calls
    apart from the HTTP client.

    Attributes:
        organization: Azure DevOps organization
        project: Project that sub-request urls are scoped to
        max_batch_size: Maximum sub-requests per envelope (1-200)
        api_version: api-version query parameter
        base_url: Service root (https://dev.azure.com)
    """

    BATCH_PATH = "_apis/$batch"

    def __init__(
        self,
        organization: str,
        project: str,
        pat: str,
        *,
        max_batch_size: int = PROVIDER_MAX_BATCH_SIZE,
        api_version: str = "7.0",
        base_url: str = "https://dev.azure.com",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize the coalescer.

        Args:
            organization: Azure DevOps organization
            project: Azure DevOps project
            pat: Personal access token
            max_batch_size: Maximum sub-requests per envelope
            api_version: REST API version
            base_url: Service root URL
            timeout: HTTP timeout per envelope in seconds
            client: Pre-built client, used as-is. It must already carry
                authentication (see ``build_async_client``); ``pat`` is then
                unused. The coalescer does not close clients it did not create.
            retry_policy: Optional retry policy applied per envelope

        Raises:
            ValueError: If max_batch_size is outside 1..200
        """
        if not 1 <= max_batch_size <= PROVIDER_MAX_BATCH_SIZE:
            raise ValueError(
                f"max_batch_size must be between 1 and {PROVIDER_MAX_BATCH_SIZE}, "
                f"got {max_batch_size}"
            )

        self.organization = organization
        self.project = project
        self.max_batch_size = max_batch_size
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy
        self._owns_client = client is None
        self._client = client or build_async_client(pat, timeout=timeout)

    async def __aenter__(self) -> BatchCoalescer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if the coalescer created it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def batch_url(self) -> str:
        return f"{self.base_url}/{self.organization}/{self.BATCH_PATH}"

    def sub_request_url(self, target: str) -> str:
        """
        Build the relative url of one sub-request.

        Example:
            >>> coalescer.sub_request_url("wit/workitems/42")
            '/contoso/web/_apis/wit/workitems/42?api-version=7.0'
        """
        separator = "&" if "?" in target else "?"
        return (
            f"/{self.organization}/{self.project}/_apis/{target}"
            f"{separator}api-version={self.api_version}"
        )

    def build_envelopes(self, descriptors: Sequence[OperationDescriptor]) -> list[BatchEnvelope]:
        """Split descriptors into consecutive envelopes of at most max_batch_size."""
        return [
            BatchEnvelope(group, self.max_batch_size)
            for group in chunk_sequence(descriptors, self.max_batch_size)
        ]

    async def execute(self, descriptors: Sequence[OperationDescriptor]) -> BatchResult:
        """
        Run all descriptors and return one outcome per descriptor, in order.

        Args:
            descriptors: Operations to run

        Returns:
            BatchResult aligned with ``descriptors``

        Raises:
            TransportError: If any envelope fails at the transport level.
                Envelopes after the failing one are not sent.
            ResponseFormatError: If a combined response cannot be read
        """
        if not descriptors:
            return BatchResult([], envelope_count=0)

        envelopes = self.build_envelopes(descriptors)
        outcomes: list[SubResponseOutcome] = []

        for number, envelope in enumerate(envelopes, start=1):
            logger.debug(
                f"Sending batch envelope {number}/{len(envelopes)} "
                f"with {len(envelope)} sub-requests"
            )
            envelope_outcomes = await call_with_policy(
                self.retry_policy,
                lambda envelope=envelope: self._send_envelope(envelope),
                label=f"batch envelope {number}",
            )
            outcomes.extend(envelope_outcomes)

        return BatchResult(outcomes, envelope_count=len(envelopes))

    async def _send_envelope(self, envelope: BatchEnvelope) -> list[SubResponseOutcome]:
        body = {
            "requests": [
                request.model_dump() for request in envelope.to_requests(self.sub_request_url)
            ]
        }

        try:
            response = await self._client.post(
                self.batch_url,
                params={"api-version": self.api_version},
                json=body,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"Batch request failed with HTTP {status_code}")
            raise TransportError(
                f"Batch request failed: HTTP {status_code}",
                status_code=status_code,
                url=self.batch_url,
                size=len(envelope),
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Batch request failed: {e}")
            raise TransportError(
                f"Batch request failed: {e}",
                url=self.batch_url,
                size=len(envelope),
            ) from e

        return self._demultiplex(response, len(envelope))

    def _demultiplex(self, response: httpx.Response, expected: int) -> list[SubResponseOutcome]:
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseFormatError(
                "Batch response is not valid JSON",
                status_code=response.status_code,
            ) from e

        sub_responses = payload.get("responses") if isinstance(payload, dict) else None
        if not isinstance(sub_responses, list):
            raise ResponseFormatError(
                "Batch response has no 'responses' list",
                status_code=response.status_code,
            )
        if len(sub_responses) != expected:
            raise ResponseFormatError(
                f"Batch response has {len(sub_responses)} sub-responses, expected {expected}",
                status_code=response.status_code,
            )

        return [
            decode_sub_response(sub.get("body"), sub.get("code"))
            if isinstance(sub, dict)
            else decode_sub_response(sub)
            for sub in self._in_request_order(sub_responses)
        ]

    @staticmethod
    def _in_request_order(sub_responses: list[Any]) -> list[Any]:
        # Sub-responses echo the request id; fall back to position when any
        # id is missing or does not map onto 0..n-1.
        ids = [sub.get("id") if isinstance(sub, dict) else None for sub in sub_responses]
        expected_ids = {str(i) for i in range(len(sub_responses))}
        if any(i is None for i in ids) or {str(i) for i in ids} != expected_ids:
            return sub_responses
        return sorted(sub_responses, key=lambda sub: int(sub["id"]))

    async def fetch_work_items(self, ids: Iterable[int]) -> BatchResult:
        """Fetch work items by id through $batch."""
        return await self.execute(
            [OperationDescriptor(target=f"wit/workitems/{work_item_id}") for work_item_id in ids]
        )

    async def update_work_items(self, updates: Iterable[Any]) -> BatchResult:
        """
        Apply JSON-patch updates through $batch.

        Args:
            updates: ``WorkItemUpdate`` objects (anything with ``id`` and
                ``patch_document()``)
        """
        return await self.execute(
            [
                OperationDescriptor(
                    target=f"wit/workitems/{update.id}",
                    verb="PATCH",
                    headers={"Content-Type": JSON_PATCH_CONTENT_TYPE},
                    payload=update.patch_document(),
                )
                for update in updates
            ]
        )


__all__ = ["BatchCoalescer", "JSON_PATCH_CONTENT_TYPE"]
