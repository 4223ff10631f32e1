import asyncio
import inspect
from typing import Dict, List, Optional

import pytest

from bitbucket_mcp.exceptions import BitbucketAPIError, BitbucketNotFoundError
from bitbucket_mcp.models import BranchRef, EntryKind, TreeEntry


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test to run in event loop")


def pytest_pyfunc_call(pyfuncitem):
    if "asyncio" not in pyfuncitem.keywords:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_func(**pyfuncitem.funcargs))
    finally:
        loop.close()
        asyncio.set_event_loop(None)

    return True


class FakeRemote:
    """In-memory remote: branches map to flat ``{path: bytes}`` snapshots.

    Directory listings are derived from the file paths (in insertion order) and
    split into pages of ``page_size`` entries. Every call is appended to
    ``calls`` as ``(operation, *args)``.
    """

    def __init__(self, page_size: int = 100) -> None:
        self.page_size = page_size
        self.branches: Dict[str, BranchRef] = {}
        self.trees: Dict[str, Dict[str, bytes]] = {}
        self.commits: list = []
        self.calls: list = []
        self.missing_dirs: set = set()
        self.failing_paths: Dict[str, Exception] = {}
        self._counter = 0

    # -- setup helpers -------------------------------------------------
    def add_branch(self, name: str, commit_hash: str, files: Optional[Dict[str, bytes]] = None):
        self.branches[name] = BranchRef(name=name, commit_hash=commit_hash)
        self.trees[name] = dict(files or {})

    def _hash_of(self, name: str) -> str:
        return self.branches[name].commit_hash

    # -- RemoteRepositoryClient ----------------------------------------
    def get_branch(self, repo, name):
        self.calls.append(("get_branch", name))
        if name not in self.branches:
            raise BitbucketNotFoundError(f"branch {name} not found")
        return self.branches[name]

    def list_branches(self, repo):
        self.calls.append(("list_branches",))
        return list(self.branches.values())

    def create_branch(self, repo, name, target_hash):
        self.calls.append(("create_branch", name, target_hash))
        source = next(b for b, ref in self.branches.items() if ref.commit_hash == target_hash)
        self.branches[name] = BranchRef(name=name, commit_hash=target_hash)
        self.trees[name] = dict(self.trees[source])
        return self.branches[name]

    def _children(self, branch: str, path: str) -> List[TreeEntry]:
        prefix = f"{path}/" if path else ""
        seen: List[TreeEntry] = []
        names = set()
        for file_path in self.trees[branch]:
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            head, sep, _ = rest.partition("/")
            child = prefix + head
            if child in names:
                continue
            names.add(child)
            seen.append(TreeEntry(child, EntryKind.DIRECTORY if sep else EntryKind.FILE))
        return seen

    def list_directory(self, repo, branch, path, *, page_len=100):
        self.calls.append(("list_directory", branch, path))
        if path in self.failing_paths:
            raise self.failing_paths[path]
        if path in self.missing_dirs or branch not in self.trees:
            raise BitbucketNotFoundError(f"{path} not found")
        entries = self._children(branch, path)
        for start in range(0, max(len(entries), 1), self.page_size):
            yield entries[start:start + self.page_size]

    def download_file(self, repo, branch, path):
        self.calls.append(("download_file", branch, path))
        if path in self.failing_paths:
            raise self.failing_paths[path]
        try:
            return self.trees[branch][path]
        except KeyError:
            raise BitbucketNotFoundError(f"{path} not found") from None

    def submit_commit(self, repo, request):
        self.calls.append(("submit_commit", request.branch, request.message))
        if "reject" in request.message:
            raise BitbucketAPIError("commit rejected", status_code=400)
        self._counter += 1
        tree = self.trees[request.branch]
        for edit in request.edits:
            tree[edit.path.lstrip("/")] = edit.content_bytes()
        self.commits.append(request)
        self.branches[request.branch] = BranchRef(request.branch, f"commit{self._counter}")


@pytest.fixture
def fake_remote():
    remote = FakeRemote()
    remote.add_branch(
        "main",
        "abc123",
        {
            "README.md": b"# demo\n",
            "src/app.py": b"print('hi')\n",
            "src/lib/util.py": b"X = 1\n",
            "docs/index.md": b"docs\n",
        },
    )
    return remote
