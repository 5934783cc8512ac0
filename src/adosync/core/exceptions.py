"""
Custom exceptions for adosync.

This module defines the exception hierarchy used by the batch coalescer,
the fan-out executor and the work-item client. Every exception carries a
human-readable message plus optional keyword context.

Exception Hierarchy:
    SyncError (base)
    ├── TransportError (whole request or envelope failed)
    │   └── ResponseFormatError (combined response could not be read)
    ├── DecodeError (a sub-response body is not structured data)
    ├── ItemError (one fan-out item failed)
    │   └── ItemTimeoutError (item did not settle in time)
    └── ConfigError (missing or invalid configuration)

Example:
    >>> from adosync.core.exceptions import TransportError
    >>> try:
    ...     raise TransportError("Batch request failed", status_code=503)
    ... except TransportError as e:
    ...     print(e.status_code, e.context)
    503 {'status_code': 503}
"""


class SyncError(Exception):
    """
    Base exception for all adosync errors.

    Attributes:
        message: Human-readable error message
        context: Dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class TransportError(SyncError):
    """
    Network-level failure for a whole request.

    Raised when a batch envelope (or a single REST call) cannot be
    completed: connection errors, timeouts at the HTTP layer, or a
    non-success status code. A transport failure on an envelope fails
    every descriptor in that envelope.

    The original httpx exception is preserved via ``__cause__``.

    Attributes:
        status_code: HTTP status code when the server answered, else None
    """

    def __init__(self, message: str, status_code: int | None = None, **context: object) -> None:
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, **context)
        self.status_code = status_code


class ResponseFormatError(TransportError):
    """
    The combined batch response could not be read.

    Raised when the envelope-level body is not JSON, has no ``responses``
    list, or the number of sub-responses does not match the number of
    sub-requests.
    """


class DecodeError(SyncError):
    """
    A sub-response body is not structured data.

    The coalescer never raises this itself (it falls back to ``Raw``);
    callers that require decoded data use ``Raw.require()`` which does.
    """


class ItemError(SyncError):
    """
    One fan-out item failed.

    Attributes:
        index: Position of the item in the input list, if known
    """

    def __init__(self, message: str, index: int | None = None, **context: object) -> None:
        if index is not None:
            context["index"] = index
        super().__init__(message, **context)
        self.index = index


class ItemTimeoutError(ItemError):
    """
    A fan-out item did not settle within its timeout.

    Attributes:
        timeout: The timeout in seconds that elapsed
    """

    def __init__(self, timeout: float, index: int | None = None) -> None:
        super().__init__(f"Operation timed out after {timeout}s", index=index, timeout=timeout)
        self.timeout = timeout


class ConfigError(SyncError):
    """Missing or invalid configuration (organization, project, token)."""


__all__ = [
    "SyncError",
    "TransportError",
    "ResponseFormatError",
    "DecodeError",
    "ItemError",
    "ItemTimeoutError",
    "ConfigError",
]
