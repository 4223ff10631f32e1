"""Remote repository client: the capability interface and its Bitbucket implementation.

The repository session only talks to :class:`RemoteRepositoryClient`, so tests
can hand it an in-memory fake and the transport can be swapped without
touching traversal or commit logic.
"""

from __future__ import annotations

import posixpath
from typing import Any, Dict, Iterator, List, Optional, Protocol
from urllib.parse import quote

import httpx

from .config import (
    BITBUCKET_API_BASE,
    BITBUCKET_COMMIT_AUTHOR,
    BITBUCKET_PAGE_LEN,
    HTTPX_TIMEOUT,
)
from .exceptions import BitbucketAPIError
from .http_clients import (
    _build_default_client,
    _get_optional_bitbucket_token,
    _request_with_metrics,
)
from .models import BranchRef, CommitRequest, EntryKind, RepositoryIdentity, TreeEntry

_ENTRY_KINDS = {
    "commit_directory": EntryKind.DIRECTORY,
    "commit_file": EntryKind.FILE,
}


class RemoteRepositoryClient(Protocol):
    """Operations a backing remote must provide.

    ``get_branch`` raises :class:`~bitbucket_mcp.exceptions.BitbucketNotFoundError`
    for a missing branch; ``list_directory`` and ``download_file`` raise it for a
    missing path.
    """

    def get_branch(self, repo: RepositoryIdentity, name: str) -> BranchRef: ...

    def list_branches(self, repo: RepositoryIdentity) -> List[BranchRef]: ...

    def create_branch(
        self, repo: RepositoryIdentity, name: str, target_hash: str
    ) -> BranchRef: ...

    def list_directory(
        self,
        repo: RepositoryIdentity,
        branch: str,
        path: str,
        *,
        page_len: int = BITBUCKET_PAGE_LEN,
    ) -> Iterator[List[TreeEntry]]: ...

    def download_file(self, repo: RepositoryIdentity, branch: str, path: str) -> bytes: ...

    def submit_commit(self, repo: RepositoryIdentity, request: CommitRequest) -> None: ...


def _q(value: str) -> str:
    return quote(value, safe="/")


def _repo_url(repo: RepositoryIdentity) -> str:
    return f"/repositories/{quote(repo.workspace, safe='')}/{quote(repo.repo_slug, safe='')}"


def _parse_branch(payload: Any) -> BranchRef:
    if not isinstance(payload, dict):
        raise BitbucketAPIError("Unexpected branch response shape from Bitbucket")
    target = payload.get("target")
    commit_hash = target.get("hash") if isinstance(target, dict) else None
    name = payload.get("name")
    if not isinstance(name, str) or not isinstance(commit_hash, str):
        raise BitbucketAPIError("Missing name/target hash in Bitbucket branch response")
    return BranchRef(name=name, commit_hash=commit_hash)


class BitbucketClient:
    """``RemoteRepositoryClient`` backed by the Bitbucket Cloud 2.0 REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: str = BITBUCKET_API_BASE,
        timeout: float = HTTPX_TIMEOUT,
        commit_author: Optional[str] = BITBUCKET_COMMIT_AUTHOR,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        if http_client is None:
            http_client = _build_default_client(
                token if token is not None else _get_optional_bitbucket_token(),
                base_url=base_url,
                timeout=timeout,
            )
        self._http = http_client
        self._commit_author = commit_author

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "BitbucketClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Low level
    # ------------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return _request_with_metrics(self._http, method, url, **kwargs)

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = self._request("GET", url, params=params)
        try:
            return resp.json()
        except ValueError as exc:
            raise BitbucketAPIError(f"Bitbucket returned non-JSON body for {url}") from exc

    def _iter_pages(self, url: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
        """Yield every page of a paginated listing, following ``next`` links."""

        next_url: Optional[str] = url
        while next_url:
            payload = self._get_json(next_url, params=params)
            yield payload
            # ``next`` already carries the query string.
            params = None
            next_url = payload.get("next") if isinstance(payload, dict) else None

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def get_branch(self, repo: RepositoryIdentity, name: str) -> BranchRef:
        payload = self._get_json(f"{_repo_url(repo)}/refs/branches/{_q(name)}")
        return _parse_branch(payload)

    def list_branches(
        self, repo: RepositoryIdentity, *, page_len: int = BITBUCKET_PAGE_LEN
    ) -> List[BranchRef]:
        branches: List[BranchRef] = []
        for page in self._iter_pages(
            f"{_repo_url(repo)}/refs/branches", params={"pagelen": page_len}
        ):
            values = page.get("values") if isinstance(page, dict) else None
            for item in values or []:
                branches.append(_parse_branch(item))
        return branches

    def create_branch(self, repo: RepositoryIdentity, name: str, target_hash: str) -> BranchRef:
        resp = self._request(
            "POST",
            f"{_repo_url(repo)}/refs/branches",
            json={"name": name, "target": {"hash": target_hash}},
        )
        return _parse_branch(resp.json())

    # ------------------------------------------------------------------
    # Source tree
    # ------------------------------------------------------------------

    def list_directory(
        self,
        repo: RepositoryIdentity,
        branch: str,
        path: str,
        *,
        page_len: int = BITBUCKET_PAGE_LEN,
    ) -> Iterator[List[TreeEntry]]:
        """Yield the entries of one directory, one list per server page.

        When ``path`` turns out to be a file, Bitbucket answers with the file's
        own metadata and that single entry is yielded.
        """

        path = path.strip("/")
        # A "/" inside the branch name is indistinguishable from a path separator here.
        url = f"{_repo_url(repo)}/src/{_q(branch)}/"
        if path:
            url += f"{_q(path)}/"

        for page in self._iter_pages(url, params={"pagelen": page_len}):
            if not isinstance(page, dict):
                raise BitbucketAPIError("Unexpected directory listing shape from Bitbucket")

            if "values" not in page:
                if page.get("type") == "commit_file" and isinstance(page.get("path"), str):
                    yield [TreeEntry(path=page["path"], kind=EntryKind.FILE)]
                return

            entries: List[TreeEntry] = []
            for item in page["values"]:
                kind = _ENTRY_KINDS.get(item.get("type"))
                # Submodule links and other entry types are not part of the tree.
                if kind is not None:
                    entries.append(TreeEntry(path=item["path"], kind=kind))
            yield entries

    def download_file(self, repo: RepositoryIdentity, branch: str, path: str) -> bytes:
        # Same caveat as list_directory: branch names containing "/" are ambiguous.
        resp = self._request("GET", f"{_repo_url(repo)}/src/{_q(branch)}/{_q(path.lstrip('/'))}")
        return resp.content

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def submit_commit(self, repo: RepositoryIdentity, request: CommitRequest) -> None:
        """Create one commit carrying every edit in ``request``.

        The form field name of each file is its repository path.
        """

        data = {"message": request.message, "branch": request.branch}
        if self._commit_author:
            data["author"] = self._commit_author

        files = [
            (edit.path, (posixpath.basename(edit.path) or edit.path, edit.content_bytes()))
            for edit in request.edits
        ]
        self._request("POST", f"{_repo_url(repo)}/src", data=data, files=files)


__all__ = ["BitbucketClient", "RemoteRepositoryClient"]
