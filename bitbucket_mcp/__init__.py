"""Bitbucket repository tools for agents.

The public names are resolved lazily so importing the package does not pull
in the MCP SDK until a server is actually built.
"""

from __future__ import annotations

import importlib
from typing import Any

_EXPORTS = {
    "BitbucketClient": "bitbucket_mcp.client",
    "BitbucketTools": "bitbucket_mcp.tools",
    "RepositoryIdentity": "bitbucket_mcp.models",
    "RepositorySession": "bitbucket_mcp.repository",
    "build_server": "bitbucket_mcp.server",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(module_name), name)


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + __all__)
