import pytest

from bitbucket_mcp.errors import _structured_tool_error
from bitbucket_mcp.exceptions import (
    BitbucketAPIError,
    BitbucketAuthError,
    BitbucketNotFoundError,
    BitbucketRateLimitError,
    ProtectedBranchError,
    ToolInputValidationError,
    UsageError,
)


@pytest.mark.parametrize(
    "exc, category",
    [
        (ProtectedBranchError("main"), "protected_branch"),
        (ToolInputValidationError("listFiles", "bad", "branchName"), "validation"),
        (UsageError("no workspace"), "validation"),
        (BitbucketNotFoundError("gone"), "not_found"),
        (BitbucketAuthError("denied", status_code=401), "auth"),
        (BitbucketRateLimitError("slow down", status_code=429), "rate_limit"),
        (BitbucketAPIError("boom", status_code=502), "bitbucket_api"),
        (RuntimeError("???"), "unknown"),
    ],
)
def test_structured_tool_error_categories(exc, category):
    payload = _structured_tool_error(exc, context="listFiles")

    assert payload["error"]["category"] == category
    assert payload["error"]["error"] == exc.__class__.__name__
    assert payload["error"]["context"] == "listFiles"
    assert payload["error"]["next_steps"]


def test_structured_tool_error_carries_status_and_path():
    payload = _structured_tool_error(
        BitbucketNotFoundError("gone"), context="readFiles", path="a.txt"
    )
    assert payload["error"]["status_code"] == 404
    assert payload["error"]["path"] == "a.txt"
    assert "code" not in payload["error"]


def test_structured_tool_error_is_logged():
    from bitbucket_mcp.config import LOG_RECORD_HANDLER

    LOG_RECORD_HANDLER.clear()
    _structured_tool_error(UsageError("no workspace"), context="listFiles")

    [record] = [r for r in LOG_RECORD_HANDLER.records if r["event"] == "tool_error"]
    assert record["tool_name"] == "listFiles"
    assert "no workspace" in record["message"]
