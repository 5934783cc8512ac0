"""
adosync - Bulk work item synchronization for Azure DevOps

Fetches and updates large sets of work items with bounded $batch requests
and concurrent fan-out.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from adosync.core.config.models import SyncConfig
from adosync.core.exceptions import SyncError, TransportError

__all__ = ["SyncConfig", "SyncError", "TransportError", "__version__"]
