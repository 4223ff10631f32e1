"""Request logging for Bitbucket API calls.

Goals:
- Keep one readable line per HTTP request, with a clickable web link when the
  request targets repository content.
- Preserve structured metadata (``extra``) for the in-memory log buffer.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from bitbucket_mcp.config import BITBUCKET_API_BASE, BITBUCKET_LOGGER, BITBUCKET_WEB_BASE
from bitbucket_mcp.metrics import _record_bitbucket_request as _record_request_metrics


def _derive_bitbucket_web_url(api_url: str) -> Optional[str]:
    """Convert an API URL into the matching bitbucket.org page, when there is one."""

    try:
        parsed = urlparse(api_url)
    except ValueError:  # pragma: no cover
        return None

    parts = [p for p in parsed.path.split("/") if p]
    try:
        idx = parts.index("repositories")
    except ValueError:
        return None

    repo_parts = parts[idx + 1 :]
    if len(repo_parts) < 2:
        return None

    web_base = BITBUCKET_WEB_BASE.rstrip("/")
    full_name = f"{repo_parts[0]}/{repo_parts[1]}"

    # /repositories/{ws}/{repo}/src/{ref}/{path}
    if len(repo_parts) >= 4 and repo_parts[2] == "src":
        return f"{web_base}/{full_name}/src/" + "/".join(repo_parts[3:])

    # /repositories/{ws}/{repo}/refs/branches/{name}
    if len(repo_parts) >= 5 and repo_parts[2:4] == ["refs", "branches"]:
        return f"{web_base}/{full_name}/branch/" + "/".join(repo_parts[4:])

    return f"{web_base}/{full_name}"


def _shorten_api_url(api_url: str) -> str:
    base = BITBUCKET_API_BASE.rstrip("/")
    if api_url.startswith(base):
        return api_url[len(base) :]
    return api_url


def _record_bitbucket_request(
    *,
    status_code: Optional[int],
    duration_ms: int,
    error: bool,
    resp: Optional[httpx.Response] = None,
    exc: Optional[BaseException] = None,
    method: Optional[str] = None,
    url: Optional[str] = None,
) -> None:
    """Log Bitbucket request metadata and record metrics."""

    if resp is not None and getattr(resp, "request", None) is not None:
        method = method or resp.request.method
        if url is None:
            url = str(resp.request.url)

    log_extra: dict[str, Any] = {
        "status_code": status_code,
        "duration_ms": duration_ms,
        "error": error,
    }
    if method:
        log_extra["method"] = method
    if url:
        log_extra["url"] = url
        web_url = _derive_bitbucket_web_url(url)
        if web_url:
            log_extra["web_url"] = web_url
    if exc is not None:
        log_extra["exc_type"] = exc.__class__.__name__

    status = status_code if status_code is not None else "ERR"
    msg = f"Bitbucket API {method or '?'} {_shorten_api_url(url or '')} -> {status} ({duration_ms}ms)"
    web_url_val = log_extra.get("web_url")
    if web_url_val:
        # Keep the URL off the end of the line; some viewers swallow trailing punctuation.
        msg += f" | web: {web_url_val} [web]"

    BITBUCKET_LOGGER.info(msg, extra=log_extra)

    _record_request_metrics(
        status_code=status_code,
        error=error,
        resp=resp,
        exc=exc,
    )


__all__ = ["_record_bitbucket_request"]
