"""Branch-scoped access to one remote repository.

A :class:`RepositorySession` holds the repository identity and the branch it is
currently working on. Nothing else is remembered between calls: every listing,
read and commit goes back to the remote.

Sessions are not safe for concurrent use; create one per branch context.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from .client import RemoteRepositoryClient
from .config import BITBUCKET_BASE_BRANCH, BITBUCKET_PAGE_LEN, TOOLS_LOGGER
from .exceptions import BitbucketNotFoundError, BranchNotFoundError, UsageError
from .models import BranchRef, CommitRequest, FileEdit, RepositoryIdentity, SessionState


class RepositorySession:
    def __init__(
        self,
        client: RemoteRepositoryClient,
        repo: RepositoryIdentity,
        base_branch: str = BITBUCKET_BASE_BRANCH,
        *,
        page_len: int = BITBUCKET_PAGE_LEN,
    ) -> None:
        self._client = client
        self._repo = repo
        self._state = SessionState(base_branch=base_branch)
        self._page_len = page_len

    @property
    def repo(self) -> RepositoryIdentity:
        return self._repo

    @property
    def base_branch(self) -> str:
        return self._state.base_branch

    @property
    def active_branch(self) -> str:
        return self._state.active_branch

    def _log_extra(self, **extra: object) -> dict:
        return {"repo": self._repo.full_name, "branch": self.active_branch, **extra}

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def branch_exists(self, name: str) -> Optional[str]:
        """Return the commit hash ``name`` points at, or None when it does not exist."""

        try:
            return self._client.get_branch(self._repo, name).commit_hash
        except BitbucketNotFoundError:
            return None

    def list_branches(self) -> List[str]:
        return [branch.name for branch in self._client.list_branches(self._repo)]

    def checkout_branch(self, name: str) -> None:
        """Make ``name`` the active branch, creating it from the base branch if needed."""

        self._state.active_branch = name
        if self.branch_exists(name) is None:
            self.create_branch_from(name, self.base_branch)

    def create_branch_from(self, new_name: str, source_name: str) -> BranchRef:
        source_hash = self.branch_exists(source_name)
        if source_hash is None:
            raise BranchNotFoundError(source_name)

        created = self._client.create_branch(self._repo, new_name, source_hash)
        TOOLS_LOGGER.chat(
            "Created branch %s from %s at %s",
            new_name,
            source_name,
            source_hash[:12],
            extra=self._log_extra(event="branch_created"),
        )
        return created

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def list_files(self, only_files: bool = False) -> List[str]:
        """Walk the active branch depth-first and return paths in remote order.

        A directory's own path (unless ``only_files``) comes right before its
        descendants.
        """

        files: List[str] = []
        self._fetch_tree("", files, only_files)
        return files

    def _fetch_tree(self, path: str, files: List[str], only_files: bool) -> None:
        try:
            entries = [
                entry
                for page in self._client.list_directory(
                    self._repo, self.active_branch, path, page_len=self._page_len
                )
                for entry in page
            ]
        except BitbucketNotFoundError:
            # The path may have been removed while we were walking.
            TOOLS_LOGGER.debug(
                "Skipping missing path %r", path, extra=self._log_extra(path=path)
            )
            return

        TOOLS_LOGGER.detailed(
            "Listed %s: %d entries",
            path or "/",
            len(entries),
            extra=self._log_extra(path=path, event="list_directory"),
        )
        for entry in entries:
            if entry.is_directory:
                if not only_files:
                    files.append(entry.path)
                self._fetch_tree(entry.path, files, only_files)
            else:
                files.append(entry.path)

    def read_file(self, path: str) -> bytes:
        return self._client.download_file(self._repo, self.active_branch, path)

    def modify_files(
        self,
        edits: Iterable[Union[FileEdit, dict]],
        message: str,
    ) -> CommitRequest:
        """Commit every edit to the active branch as one remote commit.

        ``edits`` may hold :class:`FileEdit` objects or ``{"path", "content"}``
        mappings. Returns the request that was submitted.
        """

        normalized = tuple(_as_file_edit(edit).normalized() for edit in edits)
        if not normalized:
            raise UsageError("modify_files requires at least one file edit")

        request = CommitRequest(branch=self.active_branch, message=message, edits=normalized)
        self._client.submit_commit(self._repo, request)

        TOOLS_LOGGER.chat(
            "Committed %d file(s) to %s",
            len(normalized),
            request.branch,
            extra=self._log_extra(event="commit_submitted"),
        )
        return request


def _as_file_edit(edit: Union[FileEdit, dict]) -> FileEdit:
    if isinstance(edit, FileEdit):
        return edit
    try:
        return FileEdit(path=edit["path"], content=edit["content"])
    except (KeyError, TypeError) as exc:
        raise UsageError(f"File edits need 'path' and 'content': {edit!r}") from exc


__all__ = ["RepositorySession"]
