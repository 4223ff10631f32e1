"""Synchronous HTTP helpers with lightweight metrics and logging wrappers."""

from __future__ import annotations

import os
import time
from typing import Any, Optional

import httpx

from .config import BITBUCKET_API_BASE, BITBUCKET_TOKEN_ENV_VARS, HTTPX_TIMEOUT
from .exceptions import (
    BitbucketAPIError,
    BitbucketAuthError,
    BitbucketNotFoundError,
    BitbucketRateLimitError,
)
from .tool_logging import _record_bitbucket_request

# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _get_optional_bitbucket_token() -> Optional[str]:
    """Return a trimmed Bitbucket token or None when missing/empty."""

    for env_var in BITBUCKET_TOKEN_ENV_VARS:
        candidate = os.environ.get(env_var)
        if candidate is not None:
            return candidate.strip() or None

    return None


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------


def _build_default_client(
    token: Optional[str] = None,
    *,
    base_url: str = BITBUCKET_API_BASE,
    timeout: float = HTTPX_TIMEOUT,
) -> httpx.Client:
    """Return an httpx.Client configured for the Bitbucket 2.0 API."""

    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    return httpx.Client(base_url=base_url, timeout=timeout, headers=headers)


# ---------------------------------------------------------------------------
# Response classification
# ---------------------------------------------------------------------------


def _error_message(resp: httpx.Response) -> str:
    """Pull the human message out of a Bitbucket error body.

    Bitbucket reports failures as ``{"type": "error", "error": {"message": ...}}``.
    """

    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
    return resp.text[:200]


def _is_rate_limit_response(resp: httpx.Response) -> bool:
    if resp.status_code == 429:
        return True
    return resp.is_error and resp.headers.get("X-RateLimit-Remaining") == "0"


def _raise_for_status(resp: httpx.Response, *, method: str, url: str) -> None:
    if not resp.is_error:
        return

    message = _error_message(resp)
    status = resp.status_code

    if _is_rate_limit_response(resp):
        retry_after = resp.headers.get("Retry-After")
        raise BitbucketRateLimitError(
            f"Bitbucket rate limit exceeded; retry after {retry_after}s"
            if retry_after
            else "Bitbucket rate limit exceeded",
            status_code=status,
        )

    if status == 404:
        raise BitbucketNotFoundError(f"Bitbucket {method} {url} not found: {message}")

    if status in (401, 403):
        raise BitbucketAuthError(
            f"Bitbucket authentication failed: {status} {message or 'Authentication failed'}",
            status_code=status,
        )

    raise BitbucketAPIError(f"Bitbucket API error {status}: {message}", status_code=status)


# ---------------------------------------------------------------------------
# Request helper with metrics
# ---------------------------------------------------------------------------


def _request_with_metrics(
    client: httpx.Client,
    method: str,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """Perform an HTTP request, record timing/response metadata, and map failures."""

    start = time.time()
    try:
        response = client.request(method, url, **kwargs)
    # InvalidURL (overlong or malformed paths) is not an HTTPError subclass.
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        _record_bitbucket_request(
            method=method,
            url=url,
            status_code=None,
            duration_ms=int((time.time() - start) * 1000),
            error=True,
            exc=exc,
        )
        raise BitbucketAPIError(f"Bitbucket request failed: {exc}") from exc

    _record_bitbucket_request(
        method=method,
        url=url,
        status_code=response.status_code,
        duration_ms=int((time.time() - start) * 1000),
        error=response.is_error,
        resp=response,
    )

    _raise_for_status(response, method=method, url=url)
    return response


__all__ = [
    "_build_default_client",
    "_get_optional_bitbucket_token",
    "_request_with_metrics",
]
