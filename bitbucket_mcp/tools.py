"""Agent-facing tools over a :class:`RepositorySession`.

Every tool checks out the requested branch first and returns plain text
(JSON) payloads. Commits to protected branches are refused before anything
reaches the remote.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import TOOLS_LOGGER
from .exceptions import BitbucketAPIError, ProtectedBranchError
from .repository import RepositorySession
from .schemas import (
    COMMIT_FILES,
    LIST_FILES,
    READ_FILES,
    function_definitions,
    validate_tool_args,
)

READ_ERROR_SENTINEL = "Error: Not found"


def _decode_content(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class BitbucketTools:
    def __init__(
        self,
        session: RepositorySession,
        protected_branches: Iterable[str] = (),
    ) -> None:
        self._session = session
        self._protected = frozenset(protected_branches)

    @property
    def session(self) -> RepositorySession:
        return self._session

    @property
    def protected_branches(self) -> frozenset[str]:
        return self._protected

    def is_protected(self, branch_name: str) -> bool:
        return branch_name in self._protected

    def list_files(self, branch_name: str) -> str:
        """List all files in the specified branch, as a JSON array."""

        self._session.checkout_branch(branch_name)
        return json.dumps(self._session.list_files(only_files=True))

    def read_files(self, branch_name: str, filenames: Sequence[str]) -> List[str]:
        """Read each file; a file that cannot be read gets the not-found sentinel."""

        self._session.checkout_branch(branch_name)

        file_contents: Dict[str, str] = {}
        for filename in filenames:
            try:
                file_contents[filename] = _decode_content(self._session.read_file(filename))
            except BitbucketAPIError as exc:
                TOOLS_LOGGER.warning(
                    "Could not read %s on %s: %s (%s)",
                    filename,
                    branch_name,
                    exc,
                    exc.__class__.__name__,
                    extra={
                        "repo": self._session.repo.full_name,
                        "branch": branch_name,
                        "path": filename,
                        "status_code": exc.status_code,
                        "event": "read_failed",
                    },
                )
                file_contents[filename] = READ_ERROR_SENTINEL

        return [json.dumps({filename: content}) for filename, content in file_contents.items()]

    def commit_files(
        self,
        branch_name: str,
        files: Sequence[Mapping[str, Any]],
        commit_message: str,
    ) -> str:
        """Commit every file in ``files`` to ``branch_name`` as one commit."""

        if self.is_protected(branch_name):
            raise ProtectedBranchError(branch_name)

        self._session.checkout_branch(branch_name)
        self._session.modify_files(files, commit_message)
        return json.dumps({"success": True})

    # ------------------------------------------------------------------
    # Function calling
    # ------------------------------------------------------------------

    def function_definitions(self, branches: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Definitions for the three tools; branches default to the remote's current list."""

        if branches is None:
            branches = self._session.list_branches()
        return function_definitions(branches)

    def invoke(
        self,
        tool_name: str,
        arguments: Mapping[str, Any],
        *,
        definitions: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> List[str]:
        """Validate ``arguments`` and run the named tool, returning its text items."""

        if definitions is None:
            # Only the read tools constrain branchName, so commits skip the branch lookup.
            needs_branches = tool_name in (LIST_FILES, READ_FILES)
            definitions = function_definitions(
                self._session.list_branches() if needs_branches else None
            )
        args = validate_tool_args(definitions, tool_name, arguments)

        if tool_name == LIST_FILES:
            return [self.list_files(args["branchName"])]
        if tool_name == READ_FILES:
            return self.read_files(args["branchName"], args["filenames"])
        if tool_name == COMMIT_FILES:
            return [self.commit_files(args["branchName"], args["files"], args["commitMessage"])]

        # validate_tool_args already rejects unknown names.
        raise AssertionError(f"unhandled tool {tool_name!r}")


__all__ = ["BitbucketTools", "READ_ERROR_SENTINEL"]
