"""FastMCP wiring for the repository tools."""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List

from mcp.server.fastmcp import FastMCP

from bitbucket_mcp.diagnostics import get_recent_server_logs, get_server_diagnostics
from bitbucket_mcp.errors import _structured_tool_error
from bitbucket_mcp.metrics import _record_tool_call
from bitbucket_mcp.schemas import COMMIT_FILES, LIST_FILES, READ_FILES, WRITE_TOOLS
from bitbucket_mcp.tools import BitbucketTools

SERVER_NAME = "bitbucket-mcp"

METRICS_RESOURCE = "diagnostics://metrics"
LOGS_RESOURCE = "diagnostics://logs"


def _call_tool(tool_name: str, fn: Callable[[], Any]) -> Any:
    """Run ``fn``, recording metrics and turning failures into error payloads."""

    start = time.time()
    errored = False
    try:
        return fn()
    except Exception as exc:
        errored = True
        return json.dumps(_structured_tool_error(exc, context=tool_name))
    finally:
        _record_tool_call(
            tool_name,
            write_action=tool_name in WRITE_TOOLS,
            duration_ms=int((time.time() - start) * 1000),
            errored=errored,
        )


def _tool_functions(tools: BitbucketTools) -> Dict[str, Callable[..., Any]]:
    def list_files(branchName: str) -> str:
        """List all files in the specified branch."""
        return _call_tool(LIST_FILES, lambda: tools.list_files(branchName))

    def read_files(branchName: str, filenames: List[str]) -> List[str]:
        """Read contents of specified files from the specified branch."""
        result = _call_tool(READ_FILES, lambda: tools.read_files(branchName, filenames))
        return result if isinstance(result, list) else [result]

    def commit_files(branchName: str, files: List[Dict[str, str]], commitMessage: str) -> str:
        """Modify multiple files and commit them to the specified branch."""
        return _call_tool(
            COMMIT_FILES, lambda: tools.commit_files(branchName, files, commitMessage)
        )

    return {
        LIST_FILES: list_files,
        READ_FILES: read_files,
        COMMIT_FILES: commit_files,
    }


def _diagnostic_resources() -> Dict[str, Callable[[], str]]:
    def metrics() -> str:
        """Server metrics and the most recent log records."""
        return json.dumps(get_server_diagnostics(), default=str)

    def logs() -> str:
        """Recent server log records, newest first, DETAILED and above."""
        return json.dumps(get_recent_server_logs(limit=0, min_level="DETAILED"), default=str)

    return {METRICS_RESOURCE: metrics, LOGS_RESOURCE: logs}


def build_server(tools: BitbucketTools, *, name: str = SERVER_NAME) -> FastMCP:
    """Return a FastMCP server exposing ``listFiles``, ``readFiles`` and ``commitFiles``.

    Metrics and recent log records are readable as the ``diagnostics://metrics``
    and ``diagnostics://logs`` resources.
    """

    repo = tools.session.repo.full_name
    server = FastMCP(
        name,
        instructions=(
            f"Tools for the Bitbucket repository {repo}. Commits to "
            f"{', '.join(sorted(tools.protected_branches)) or 'no branches'} are refused."
        ),
    )
    for tool_name, fn in _tool_functions(tools).items():
        server.add_tool(fn, name=tool_name, description=fn.__doc__)
    for uri, fn in _diagnostic_resources().items():
        server.resource(uri, description=fn.__doc__, mime_type="application/json")(fn)
    return server


__all__ = ["LOGS_RESOURCE", "METRICS_RESOURCE", "SERVER_NAME", "build_server"]
