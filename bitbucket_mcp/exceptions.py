"""Custom exception types used across the Bitbucket MCP server."""

from __future__ import annotations

from typing import Optional


class BitbucketAPIError(Exception):
    """Transport or remote failure talking to Bitbucket."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BitbucketNotFoundError(BitbucketAPIError):
    """Raised when Bitbucket answers 404 for a branch, path or file."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=404)


class BranchNotFoundError(BitbucketNotFoundError):
    def __init__(self, branch: str) -> None:
        super().__init__(f"Branch {branch!r} does not exist")
        self.branch = branch


class BitbucketAuthError(BitbucketAPIError):
    pass


class BitbucketRateLimitError(BitbucketAPIError):
    """Raised when Bitbucket responds with a rate limit error."""

    pass


class ProtectedBranchError(Exception):
    code = "PROTECTED_BRANCH"

    def __init__(self, branch: str) -> None:
        super().__init__(f"Operation not allowed: The branch '{branch}' is protected.")
        self.branch = branch


class UsageError(Exception):
    """Raised when an operation cannot proceed due to misconfiguration or bad inputs."""

    pass


class ToolInputValidationError(ValueError):
    """Raised when tool arguments fail schema validation."""

    def __init__(self, tool_name: str, message: str, field: str | None = None) -> None:
        super().__init__(tool_name, message, field)
        self.tool_name = tool_name
        self.message = message
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.tool_name}: {self.message} (field={self.field})"
        return f"{self.tool_name}: {self.message}"


__all__ = [
    "BitbucketAPIError",
    "BitbucketAuthError",
    "BitbucketNotFoundError",
    "BitbucketRateLimitError",
    "BranchNotFoundError",
    "ProtectedBranchError",
    "ToolInputValidationError",
    "UsageError",
]
