"""
Batch coalescing for the Azure DevOps $batch endpoint.
"""

from adosync.core.batch.coalescer import JSON_PATCH_CONTENT_TYPE, BatchCoalescer
from adosync.core.batch.models import (
    BatchEnvelope,
    BatchResult,
    Decoded,
    OperationDescriptor,
    Raw,
    SubRequest,
    SubResponseOutcome,
    decode_sub_response,
)

__all__ = [
    "BatchCoalescer",
    "BatchEnvelope",
    "BatchResult",
    "Decoded",
    "JSON_PATCH_CONTENT_TYPE",
    "OperationDescriptor",
    "Raw",
    "SubRequest",
    "SubResponseOutcome",
    "decode_sub_response",
]
