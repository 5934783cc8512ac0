"""
httpx client construction for the Azure DevOps REST API.

All remote calls go through an ``httpx.AsyncClient`` built here so that
authentication, timeouts and default headers are the same everywhere.
"""

from __future__ import annotations

import httpx

from adosync import __version__

USER_AGENT = f"adosync/{__version__}"


def build_async_client(
    pat: str,
    *,
    timeout: float = 30.0,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create an ``httpx.AsyncClient`` authenticated with a personal access token.

    Azure DevOps expects HTTP Basic auth with an empty user name and the
    token as the password.

    Args:
        pat: Personal access token
        timeout: Request timeout in seconds
        extra_headers: Headers added to every request
        transport: Custom transport (tests pass ``httpx.MockTransport``)

    Returns:
        Configured AsyncClient. The caller owns it and must close it.
    """
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        auth=httpx.BasicAuth("", pat),
        timeout=httpx.Timeout(timeout),
        headers=headers,
        transport=transport,
    )


__all__ = ["build_async_client", "USER_AGENT"]
