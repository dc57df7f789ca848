"""Core dataclasses and errors for buildstore."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

REVERT_TRAILER = "Revert-To"


class BuildStoreError(Exception):
    """Base error for buildstore."""

    pass


class HostError(BuildStoreError):
    """A call to the version-control host failed."""

    pass


class NotFoundError(HostError):
    """A ref, commit, tree, blob or path does not exist on the host."""

    pass


class ConflictError(HostError):
    """A fast-forward ref update was rejected because the ref moved."""

    def __init__(self, message: str, ref: str | None = None, expected: str | None = None):
        super().__init__(message)
        self.ref = ref
        self.expected = expected


class UpstreamError(HostError):
    """Any other non-success response from the host."""

    pass


class MalformedConfigError(BuildStoreError):
    """The project config file exists but does not match its schema."""

    pass


@dataclass
class FileRecord:
    """A single file: slash-delimited path plus text content."""

    path: str
    content: str

    @property
    def filename(self) -> str:
        """Extract just the filename from the path."""
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or empty string."""
        name = self.filename
        if "." not in name:
            return ""
        return "." + name.rsplit(".", 1)[-1].lower()


class TreeSnapshot:
    """The full file state of a project at one commit.

    Keeps insertion order, but two snapshots are equal when they map the
    same paths to the same contents. No two records may share a path.
    """

    def __init__(self, files: Iterable[FileRecord] = ()):
        self._files: dict[str, FileRecord] = {}
        for record in files:
            if record.path in self._files:
                raise ValueError(f"Duplicate path in snapshot: {record.path}")
            self._files[record.path] = record

    def __iter__(self) -> Iterator[FileRecord]:
        return iter(self._files.values())

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeSnapshot):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"TreeSnapshot({list(self._files)!r})"

    @property
    def files(self) -> list[FileRecord]:
        return list(self._files.values())

    @property
    def paths(self) -> list[str]:
        return list(self._files)

    def get(self, path: str) -> Optional[FileRecord]:
        return self._files.get(path)

    def as_dict(self) -> dict[str, str]:
        """Map of path to content, for order-insensitive comparison."""
        return {path: record.content for path, record in self._files.items()}


@dataclass
class TreeEntry:
    """One entry of a host tree listing.

    ``path`` is relative to the tree that was listed.
    """

    path: str
    type: str  # "blob", "tree" or "commit" (submodule)
    sha: str
    mode: str = "100644"


@dataclass
class BlobPayload:
    """Blob content in the host's transport encoding."""

    content: str
    encoding: str = "base64"


@dataclass
class CommitRecord:
    """An immutable commit as reported by the host."""

    id: str
    message: str
    author: str
    timestamp: str
    parent_id: Optional[str] = None
    tree_id: Optional[str] = None

    @property
    def short_id(self) -> str:
        """First 7 characters of the commit id for display."""
        return self.id[:7]

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0].strip()

    @property
    def revert_target(self) -> Optional[str]:
        """Commit id this commit restored, if it was created by a revert."""
        match = re.search(rf"^{REVERT_TRAILER}:\s*(\S+)\s*$", self.message, re.MULTILINE)
        return match.group(1) if match else None


@dataclass
class PatchRequest:
    """A literal find/replace instruction scoped to one file."""

    find_text: str
    replace_text: str
    path: Optional[str] = None


@dataclass
class PatchResult:
    """Outcome of applying a PatchRequest.

    On success exactly one file changed; on failure nothing was touched.
    """

    success: bool
    modified_file: Optional[FileRecord] = None
    error: Optional[str] = None
    method: Optional[str] = None  # "exact" or "normalized"

    @classmethod
    def failed(cls, error: str) -> PatchResult:
        return cls(success=False, error=error)

