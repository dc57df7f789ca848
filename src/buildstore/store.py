"""BuildStore: one project repository with its reader, writer and history."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from buildstore.codec import DEFAULT_CODEC, ContentCodec
from buildstore.core import CommitRecord, FileRecord, PatchResult, TreeSnapshot
from buildstore.history import DEFAULT_HISTORY_LIMIT, HistoryManager
from buildstore.hosts.base import GitHost
from buildstore.parser import dedupe_files, parse_generated_files
from buildstore.patch import apply_patch_response
from buildstore.reader import TreeReader
from buildstore.writer import CommitWriter

logger = logging.getLogger(__name__)

DEFAULT_REF = "main"


def format_generation_message(files: list[FileRecord]) -> str:
    """Describe a set of written files as a commit message."""
    if len(files) == 1:
        return f"Update {files[0].path}"
    subject = f"Update {len(files)} files"
    body = "\n".join(f"- {record.path}" for record in files)
    return f"{subject}\n\n{body}"


def format_patch_message(record: FileRecord) -> str:
    """Describe a patched file as a commit message."""
    return f"Edit {record.path}"


class BuildStore:
    """Facade binding a host, a codec and a default branch.

    All methods accept an explicit ``ref``; it defaults to the store's branch.
    """

    def __init__(
        self,
        host: GitHost,
        ref: str = DEFAULT_REF,
        codec: ContentCodec = DEFAULT_CODEC,
    ):
        self.host = host
        self.ref = ref
        self.reader = TreeReader(host, codec)
        self.writer = CommitWriter(host, codec, reader=self.reader)
        self.history = HistoryManager(host, self.writer)

    async def fetch_tree(self, ref: Optional[str] = None) -> TreeSnapshot:
        return await self.reader.fetch_tree(ref or self.ref)

    async def read_file(self, path: str, ref: Optional[str] = None) -> Optional[str]:
        return await self.reader.read_file(ref or self.ref, path)

    async def commit(
        self, files: Iterable[FileRecord], message: str, ref: Optional[str] = None
    ) -> str:
        return await self.writer.commit(ref or self.ref, files, message)

    async def delete_file(
        self, path: str, message: Optional[str] = None, ref: Optional[str] = None
    ) -> str:
        return await self.writer.delete_file(ref or self.ref, path, message)

    async def list_history(
        self, limit: int = DEFAULT_HISTORY_LIMIT, ref: Optional[str] = None
    ) -> list[CommitRecord]:
        return await self.history.list_history(ref or self.ref, limit)

    async def revert(self, target_id: str, ref: Optional[str] = None) -> str:
        return await self.history.revert(target_id, ref or self.ref)

    async def apply_generation(
        self, text: str, message: Optional[str] = None, ref: Optional[str] = None
    ) -> Optional[str]:
        """Parse full-file AI output and commit every file it contains.

        Returns:
            The new commit id, or None if the text held no usable files.
        """
        files = dedupe_files(parse_generated_files(text))
        if not files:
            logger.debug("Generation contained no file blocks; nothing committed")
            return None
        return await self.commit(files, message or format_generation_message(files), ref=ref)

    async def apply_patch(
        self, text: str, message: Optional[str] = None, ref: Optional[str] = None
    ) -> tuple[PatchResult, Optional[str]]:
        """Apply a PATCH response against the current files and commit it.

        Returns:
            Tuple of (patch result, new commit id). The commit id is None
            when the patch failed, in which case nothing was written.
        """
        snapshot = await self.fetch_tree(ref)
        result = apply_patch_response(text, snapshot.files)
        if not result.success:
            logger.debug("Patch not applied: %s", result.error)
            return result, None
        commit_id = await self.commit(
            [result.modified_file], message or format_patch_message(result.modified_file), ref=ref
        )
        return result, commit_id
