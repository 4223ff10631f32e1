"""Consistent tool-failure payloads.

The payload shape should remain stable so clients can rely on it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import jsonschema

from bitbucket_mcp.config import BASE_LOGGER
from bitbucket_mcp.exceptions import (
    BitbucketAPIError,
    BitbucketAuthError,
    BitbucketNotFoundError,
    BitbucketRateLimitError,
    ProtectedBranchError,
    ToolInputValidationError,
    UsageError,
)


def _summarize_exception(exc: BaseException) -> str:
    """Create a short human-readable message."""
    if isinstance(exc, jsonschema.ValidationError):
        path = list(exc.path)
        base_message = exc.message or exc.__class__.__name__
        if path:
            return f"{base_message} (at {' -> '.join(str(p) for p in path)})"
        return base_message

    return str(exc) or exc.__class__.__name__


def _classify_category(exc: BaseException) -> str:
    if isinstance(exc, ProtectedBranchError):
        return "protected_branch"
    if isinstance(exc, (jsonschema.ValidationError, ToolInputValidationError, UsageError)):
        return "validation"
    if isinstance(exc, BitbucketNotFoundError):
        return "not_found"
    if isinstance(exc, BitbucketAuthError):
        return "auth"
    if isinstance(exc, BitbucketRateLimitError):
        return "rate_limit"
    if isinstance(exc, BitbucketAPIError):
        return "bitbucket_api"
    if isinstance(exc, (ValueError, TypeError)):
        return "validation"
    return "unknown"


_NEXT_STEPS = {
    "protected_branch": "Commit to a different (non-protected) branch.",
    "validation": "Check the tool arguments against its schema and retry.",
    "not_found": "Check the branch and path names; list files to see what exists.",
    "auth": "Check the Bitbucket token and its repository permissions.",
    "rate_limit": "Wait for the rate limit window to reset, then retry the whole call.",
    "bitbucket_api": "Retry after a short delay. If persistent, reduce request size.",
}


def _structured_tool_error(
    exc: BaseException, *, context: str, path: Optional[str] = None
) -> Dict[str, Any]:
    """Build a serializable payload for MCP clients."""
    message = _summarize_exception(exc)
    category = _classify_category(exc)

    BASE_LOGGER.warning(
        "Tool failure in %s: %s",
        context,
        message,
        extra={"tool_name": context, "path": path, "event": "tool_error"},
    )

    payload: Dict[str, Any] = {
        "error": {
            "error": exc.__class__.__name__,
            "message": message,
            "context": context,
            "category": category,
            "next_steps": _NEXT_STEPS.get(
                category, "Review the server logs and retry with smaller steps."
            ),
        }
    }

    code = getattr(exc, "code", None)
    if code:
        payload["error"]["code"] = code
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        payload["error"]["status_code"] = status_code
    if path:
        payload["error"]["path"] = path

    return payload


__all__ = ["_structured_tool_error"]
