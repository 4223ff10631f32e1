"""Bitbucket MCP server entry point.

Builds the client, session and tool facade from environment configuration
(see ``bitbucket_mcp.config``) and serves the tools over MCP.
"""

from __future__ import annotations

from typing import Iterable, Optional

from bitbucket_mcp import config
from bitbucket_mcp.client import BitbucketClient, RemoteRepositoryClient
from bitbucket_mcp.exceptions import UsageError
from bitbucket_mcp.models import RepositoryIdentity
from bitbucket_mcp.repository import RepositorySession
from bitbucket_mcp.tools import BitbucketTools


def tools_from_env(
    *,
    workspace: Optional[str] = None,
    repository: Optional[str] = None,
    base_branch: Optional[str] = None,
    protected_branches: Optional[Iterable[str]] = None,
    client: Optional[RemoteRepositoryClient] = None,
) -> BitbucketTools:
    """Return a ready facade; explicit arguments override the environment."""

    workspace = workspace or config.BITBUCKET_WORKSPACE
    repository = repository or config.BITBUCKET_REPOSITORY
    if not workspace or not repository:
        raise UsageError(
            "BITBUCKET_WORKSPACE and BITBUCKET_REPOSITORY must be set to serve a repository"
        )

    if protected_branches is None:
        protected_branches = config.BITBUCKET_PROTECTED_BRANCHES

    session = RepositorySession(
        client if client is not None else BitbucketClient(),
        RepositoryIdentity(workspace=workspace, repo_slug=repository),
        base_branch or config.BITBUCKET_BASE_BRANCH,
    )
    return BitbucketTools(session, protected_branches)


def run(transport: str = "stdio") -> None:
    from bitbucket_mcp.server import build_server

    tools = tools_from_env()
    config.BASE_LOGGER.info(
        "Serving %s (base branch %s, protected: %s) over %s",
        tools.session.repo.full_name,
        tools.session.base_branch,
        ", ".join(sorted(tools.protected_branches)) or "none",
        transport,
    )
    build_server(tools).run(transport=transport)


if __name__ == "__main__":
    run()
