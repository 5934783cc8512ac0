"""
Work item fetch, query and update helpers built on the batch coalescer
and the fan-out executor.
"""

from adosync.core.workitems.client import WorkItemClient
from adosync.core.workitems.models import PatchOperation, SyncSummary, WorkItemUpdate
from adosync.core.workitems.service import WorkItemSyncService

__all__ = [
    "PatchOperation",
    "SyncSummary",
    "WorkItemClient",
    "WorkItemSyncService",
    "WorkItemUpdate",
]
