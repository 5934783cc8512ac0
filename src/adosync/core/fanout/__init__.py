"""
Fan-out execution of many independent async operations.

The executor bounds how work is dispatched, gives every item its own
timeout, isolates failures, and keeps results in input order.
"""

from adosync.core.fanout.executor import FanOutExecutor, Processor, process_parallel
from adosync.core.fanout.models import FanOutOptions, FanOutSummary, ItemOutcome, ItemState
from adosync.core.fanout.progress import (
    NullProgressReporter,
    ProgressReporter,
    RichProgressReporter,
)

__all__ = [
    "FanOutExecutor",
    "FanOutOptions",
    "FanOutSummary",
    "ItemOutcome",
    "ItemState",
    "NullProgressReporter",
    "Processor",
    "ProgressReporter",
    "RichProgressReporter",
    "process_parallel",
]
