"""Interface to a Git-object-model hosting service."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from buildstore.core import BlobPayload, CommitRecord, TreeEntry

BLOB_MODE = "100644"
COMMIT_ID_PATTERN = re.compile(r"^[0-9a-f]{40}$")


def is_commit_id(value: str) -> bool:
    """Check if a ref string is a full hex commit id rather than a branch name."""
    return bool(COMMIT_ID_PATTERN.match(value))


class GitHost(ABC):
    """The host operations the store needs.

    An instance is bound to a single repository. Every method is a coroutine
    and may raise NotFoundError, ConflictError or UpstreamError.
    """

    @abstractmethod
    async def get_ref(self, ref: str) -> str:
        """Resolve a branch name to its head commit id."""

    @abstractmethod
    async def get_commit(self, sha: str) -> CommitRecord:
        """Read a commit, including its tree id."""

    @abstractmethod
    async def get_tree(self, sha: str) -> list[TreeEntry]:
        """List one level of a tree."""

    @abstractmethod
    async def get_blob(self, sha: str) -> BlobPayload:
        """Read a blob in transport encoding."""

    @abstractmethod
    async def create_blob(self, content: str, encoding: str) -> str:
        """Store a blob and return its id."""

    @abstractmethod
    async def create_tree(self, base_tree: Optional[str], entries: list[TreeEntry]) -> str:
        """Create a tree overlaying entries (full paths) on base_tree."""

    @abstractmethod
    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        """Create a commit object and return its id."""

    @abstractmethod
    async def update_ref(self, ref: str, sha: str) -> None:
        """Fast-forward a branch to sha.

        Raises:
            ConflictError: If sha does not descend from the branch's head.
        """

    @abstractmethod
    async def create_ref(self, ref: str, sha: str) -> None:
        """Create a new branch pointing at sha."""

    @abstractmethod
    async def list_commits(self, ref: str, limit: int) -> list[CommitRecord]:
        """List commits reachable from ref, newest first."""

    @abstractmethod
    async def delete_file(self, ref: str, path: str, blob_sha: str, message: str) -> str:
        """Commit the removal of one path and return the new commit id.

        Raises:
            ConflictError: If blob_sha is not the path's current content hash.
        """

    @abstractmethod
    async def delete_repository(self) -> None:
        """Delete the whole repository."""

    async def aclose(self) -> None:
        """Release any resources held by the host."""

    async def __aenter__(self) -> GitHost:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
