"""Shared HTTP helpers for checksum manifest retrieval.

Provides a thin wrapper around ``httpx.Client`` with standardised
timeouts, user-agent headers, and error handling. Every manifest request
goes through ``get_json`` so that HTTP behaviour is consistent and
testable (tests inject an ``httpx.MockTransport``).

Every failure is raised as a typed ``ManifestError`` subclass; a failed
request never produces an empty result.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wpfortify import USER_AGENT
from wpfortify.exceptions import (
    TransportError,
    UnexpectedStatusError,
    UnparsableResponseError,
)

logger = logging.getLogger(__name__)

# Timeout for all manifest HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 20.0


def build_client(
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create the client used for manifest requests.

    Args:
        timeout: Per-request timeout in seconds.
        transport: Optional transport override (used by tests).

    Returns:
        A configured ``httpx.Client``. The caller owns closing it.
    """
    return httpx.Client(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        transport=transport,
    )


def get_json(
    client: httpx.Client,
    url: str,
    *,
    params: dict[str, str] | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Fetch a URL and parse the response as a JSON object.

    The WPFortify User-Agent is sent on every request, whatever client
    was passed in.

    Args:
        client: The client to issue the request with.
        url: The URL to fetch.
        params: Optional query parameters.
        timeout: Optional per-request timeout overriding the client's.

    Returns:
        Parsed JSON object.

    Raises:
        TransportError: On connection errors and timeouts.
        UnexpectedStatusError: On any status other than 200.
        UnparsableResponseError: If the body is not a JSON object.
    """
    kwargs: dict[str, Any] = {"params": params, "headers": {"User-Agent": USER_AGENT}}
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        resp = client.get(url, **kwargs)
    except httpx.TimeoutException as exc:
        logger.warning("Timeout fetching %s", url)
        raise TransportError(f"Request to {url} timed out.") from exc
    except httpx.RequestError as exc:
        logger.warning("Request error for %s: %s", url, exc)
        raise TransportError(f"Request to {url} failed: {exc}") from exc

    if resp.status_code != 200:
        logger.warning("HTTP %d from %s", resp.status_code, url)
        raise UnexpectedStatusError(
            f"Unexpected response while fetching checksums ({resp.status_code}).",
            resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise UnparsableResponseError("Unable to parse checksum response.") from exc

    if not isinstance(data, dict):
        raise UnparsableResponseError("Unable to parse checksum response.")
    return data
