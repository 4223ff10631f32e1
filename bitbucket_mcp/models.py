"""Value types shared by the client, the session and the tool facade."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Tuple, Union


@dataclass(frozen=True)
class RepositoryIdentity:
    workspace: str
    repo_slug: str

    @property
    def full_name(self) -> str:
        return f"{self.workspace}/{self.repo_slug}"


@dataclass(frozen=True)
class BranchRef:
    name: str
    commit_hash: str


@dataclass
class SessionState:
    """Branch state carried across calls on one session.

    ``active_branch`` starts out equal to ``base_branch`` and is only
    reassigned by checkout.
    """

    base_branch: str
    active_branch: str = ""

    def __post_init__(self) -> None:
        if not self.active_branch:
            self.active_branch = self.base_branch


class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class TreeEntry:
    path: str
    kind: EntryKind

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True)
class FileEdit:
    path: str
    content: Union[str, bytes]

    def normalized(self) -> "FileEdit":
        """Return this edit with a path rooted at ``/``."""

        if self.path.startswith("/"):
            return self
        return replace(self, path=f"/{self.path}")

    def content_bytes(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")


@dataclass(frozen=True)
class CommitRequest:
    branch: str
    message: str
    edits: Tuple[FileEdit, ...] = field(default_factory=tuple)


__all__ = [
    "BranchRef",
    "CommitRequest",
    "EntryKind",
    "FileEdit",
    "RepositoryIdentity",
    "SessionState",
    "TreeEntry",
]
