"""
Data models for the batch coalescer.

An ``OperationDescriptor`` describes one planned REST call. Descriptors are
grouped into ``BatchEnvelope`` objects (one physical $batch request each),
and the combined response is demultiplexed into ``Decoded`` or ``Raw``
outcomes collected in a ``BatchResult``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Union, overload

from pydantic import BaseModel, ConfigDict, Field, field_validator

from adosync.core.exceptions import DecodeError


class OperationDescriptor(BaseModel):
    """
    One logical remote operation, before it is placed in an envelope.

    ``target`` is the API path below ``_apis/`` (for example
    ``wit/workitems/42``). The positional id is not stored here; it is
    assigned when the descriptor is placed in an envelope.

    Example:
        >>> op = OperationDescriptor(target="wit/workitems/42")
        >>> op.verb
        'GET'
    """

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., min_length=1, description="Path below _apis/")
    verb: str = Field(default="GET", description="HTTP method")
    headers: dict[str, str] = Field(default_factory=dict)
    payload: Any = Field(default=None, description="Request body (JSON-serializable)")

    @field_validator("verb")
    @classmethod
    def normalize_verb(cls, v: str) -> str:
        return v.upper()

    @field_validator("target")
    @classmethod
    def strip_leading_slash(cls, v: str) -> str:
        return v.lstrip("/")


class SubRequest(BaseModel):
    """Wire form of a descriptor inside a $batch body."""

    id: str
    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class BatchEnvelope:
    """
    Ordered group of descriptors sent as one $batch request.

    An envelope never holds more than ``max_size`` descriptors.
    """

    def __init__(self, descriptors: Sequence[OperationDescriptor], max_size: int) -> None:
        if len(descriptors) > max_size:
            raise ValueError(
                f"Envelope holds at most {max_size} descriptors, got {len(descriptors)}"
            )
        self.descriptors: tuple[OperationDescriptor, ...] = tuple(descriptors)
        self.max_size = max_size

    def __len__(self) -> int:
        return len(self.descriptors)

    def to_requests(self, url_for: Callable[[str], str]) -> list[SubRequest]:
        """
        Build sub-requests with ids equal to their position in the envelope.

        Args:
            url_for: Callable mapping a descriptor target to a sub-request url
        """
        return [
            SubRequest(
                id=str(index),
                method=op.verb,
                url=url_for(op.target),
                headers=dict(op.headers),
                body=op.payload,
            )
            for index, op in enumerate(self.descriptors)
        ]


@dataclass(frozen=True)
class Decoded:
    """Sub-response whose body parsed as structured data."""

    value: Any
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is None or 200 <= self.status_code < 300

    def require(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Raw:
    """Sub-response whose body could not be parsed; keeps the raw text."""

    body: str | None
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is None or 200 <= self.status_code < 300

    def require(self) -> Any:
        raise DecodeError(
            "Sub-response body is not valid JSON",
            status_code=self.status_code,
            body=self.body,
        )


SubResponseOutcome = Union[Decoded, Raw]


def decode_sub_response(body: Any, status_code: int | None = None) -> SubResponseOutcome:
    """
    Decode one sub-response body.

    Strings are parsed as JSON; anything that does not parse becomes
    ``Raw``. Bodies that are already structured (dicts, lists, numbers)
    are ``Decoded`` as-is. A missing body is ``Raw(None)``.

    Example:
        >>> decode_sub_response('{"id": 1}')
        Decoded(value={'id': 1}, status_code=None)
        >>> decode_sub_response("not json", 500)
        Raw(body='not json', status_code=500)
    """
    if body is None:
        return Raw(None, status_code)
    if not isinstance(body, (str, bytes)):
        return Decoded(body, status_code)
    try:
        return Decoded(json.loads(body), status_code)
    except (json.JSONDecodeError, UnicodeDecodeError):
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        return Raw(text, status_code)


class BatchResult(Sequence[SubResponseOutcome]):
    """
    Outcomes aligned positionally with the descriptors passed to the coalescer.

    Attributes:
        outcomes: One Decoded/Raw per descriptor, in input order
        envelope_count: Number of $batch requests that produced this result
    """

    def __init__(self, outcomes: Sequence[SubResponseOutcome], envelope_count: int = 0) -> None:
        self.outcomes: list[SubResponseOutcome] = list(outcomes)
        self.envelope_count = envelope_count

    def __len__(self) -> int:
        return len(self.outcomes)

    @overload
    def __getitem__(self, index: int) -> SubResponseOutcome: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[SubResponseOutcome]: ...

    def __getitem__(
        self, index: int | slice
    ) -> SubResponseOutcome | Sequence[SubResponseOutcome]:
        return self.outcomes[index]

    def __iter__(self) -> Iterator[SubResponseOutcome]:
        return iter(self.outcomes)

    def __repr__(self) -> str:
        return f"BatchResult({len(self.outcomes)} outcomes, {self.envelope_count} envelopes)"

    def values(self) -> list[Any]:
        """Plain values: decoded data, or the raw body for undecodable outcomes."""
        return [o.value if isinstance(o, Decoded) else o.body for o in self.outcomes]

    def ok_values(self) -> list[Any]:
        """Decoded values of 2xx sub-responses; None for errors and undecodable bodies."""
        return [o.value if isinstance(o, Decoded) and o.ok else None for o in self.outcomes]

    @property
    def raw_count(self) -> int:
        return sum(1 for o in self.outcomes if isinstance(o, Raw))

    @property
    def failed_count(self) -> int:
        """Sub-responses the service answered with a non-2xx code."""
        return sum(1 for o in self.outcomes if not o.ok)


__all__ = [
    "OperationDescriptor",
    "SubRequest",
    "BatchEnvelope",
    "Decoded",
    "Raw",
    "SubResponseOutcome",
    "decode_sub_response",
    "BatchResult",
]
