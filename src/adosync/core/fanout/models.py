"""
Data models for the fan-out executor.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from adosync.core.config.models import default_worker_count


class ItemState(str, Enum):
    """Lifecycle of one fan-out item. No retries move it backwards."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class FanOutOptions(BaseModel):
    """
    Options for one fan-out run.

    The same object is passed as the second argument to the per-item
    processor, so processors can read the timeout or any extra fields.

    Attributes:
        max_workers: Concurrency limit; chunk size is ceil(items / max_workers)
        timeout: Seconds each item may take before it is treated as failed
        show_progress: Report completed items to a progress reporter
        bounded: Gate dispatch with a semaphore so at most max_workers items
            run at once. When False, chunking is advisory and every item
            starts immediately.
        cancel_on_timeout: Cancel items that time out instead of letting them
            run on in the background
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    max_workers: int = Field(default_factory=default_worker_count, ge=1)
    timeout: float = Field(default=30.0, gt=0)
    show_progress: bool = False
    bounded: bool = False
    cancel_on_timeout: bool = True


class ItemOutcome(BaseModel):
    """Result of one item in a fan-out run."""

    index: int
    state: ItemState = ItemState.PENDING
    value: Any = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.state == ItemState.SUCCEEDED


class FanOutSummary(BaseModel):
    """Counts over a list of item outcomes."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: list[ItemOutcome]) -> FanOutSummary:
        return cls(
            total=len(outcomes),
            succeeded=sum(1 for o in outcomes if o.state == ItemState.SUCCEEDED),
            failed=sum(1 for o in outcomes if o.state == ItemState.FAILED),
            timed_out=sum(1 for o in outcomes if o.state == ItemState.TIMED_OUT),
        )


__all__ = ["ItemState", "FanOutOptions", "ItemOutcome", "FanOutSummary"]
