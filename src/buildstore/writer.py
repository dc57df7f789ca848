"""Commit writer: persists a set of files as one atomic commit."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from buildstore.codec import DEFAULT_CODEC, ContentCodec
from buildstore.core import FileRecord, NotFoundError, TreeEntry
from buildstore.hosts.base import BLOB_MODE, GitHost
from buildstore.reader import TreeReader

logger = logging.getLogger(__name__)


def validate_files(files: Iterable[FileRecord]) -> list[FileRecord]:
    """Check a file list can be written as one tree overlay.

    Raises:
        ValueError: On an empty list, an empty or absolute path, or a
            repeated path.
    """
    files = list(files)
    if not files:
        raise ValueError("Nothing to commit: file list is empty")

    seen: set[str] = set()
    for record in files:
        if not record.path or not record.path.strip():
            raise ValueError("File path must not be empty")
        if record.path.startswith("/"):
            raise ValueError(f"File path must be relative: {record.path}")
        if record.path in seen:
            raise ValueError(f"Duplicate path in commit: {record.path}")
        seen.add(record.path)
    return files


class CommitWriter:
    """Writes multi-file changes as single commits.

    The ref update is the only mutating step and always runs last. A failure
    anywhere before it leaves the ref where it was. A rejected fast-forward
    surfaces as ConflictError and is not retried.
    """

    def __init__(
        self,
        host: GitHost,
        codec: ContentCodec = DEFAULT_CODEC,
        reader: Optional[TreeReader] = None,
    ):
        self.host = host
        self.codec = codec
        self.reader = reader or TreeReader(host, codec)

    async def _create_blob(self, record: FileRecord) -> TreeEntry:
        payload = self.codec.encode(record.content)
        sha = await self.host.create_blob(payload.content, payload.encoding)
        return TreeEntry(path=record.path, type="blob", sha=sha, mode=BLOB_MODE)

    async def commit(self, ref: str, files: Iterable[FileRecord], message: str) -> str:
        """Commit files on top of ref's head.

        Paths not in files are carried over from the head's tree.

        Returns:
            The new commit id.
        """
        files = validate_files(files)

        head = await self.host.get_ref(ref)
        base_tree = (await self.host.get_commit(head)).tree_id

        # Blobs are independent; fan out, then fan in before building the tree.
        entries = await asyncio.gather(*(self._create_blob(record) for record in files))

        tree = await self.host.create_tree(base_tree, list(entries))
        return await self.commit_tree(ref, tree, message, head=head)

    async def commit_tree(
        self, ref: str, tree: str, message: str, head: Optional[str] = None
    ) -> str:
        """Create a commit for an existing tree and fast-forward ref to it.

        Args:
            ref: Branch to advance.
            tree: Tree id for the new commit.
            message: Commit message.
            head: Parent commit id; resolved from ref when omitted.

        Returns:
            The new commit id.
        """
        if head is None:
            head = await self.host.get_ref(ref)
        sha = await self.host.create_commit(message, tree, [head])
        await self.host.update_ref(ref, sha)
        logger.info("Advanced %s %s -> %s", ref, head[:7], sha[:7])
        return sha

    async def delete_file(self, ref: str, path: str, message: Optional[str] = None) -> str:
        """Remove one file in its own commit.

        Raises:
            NotFoundError: If path does not exist at ref.
        """
        entry = await self.reader.find_entry(ref, path)
        if entry is None:
            raise NotFoundError(f"Path not found at {ref}: {path}")
        sha = await self.host.delete_file(ref, path, entry.sha, message or f"Delete {path}")
        logger.info("Deleted %s on %s in %s", path, ref, sha[:7])
        return sha
