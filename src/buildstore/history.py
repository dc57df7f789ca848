"""History listing and non-destructive revert."""

from __future__ import annotations

import logging

from buildstore.core import REVERT_TRAILER, CommitRecord
from buildstore.hosts.base import GitHost
from buildstore.writer import CommitWriter

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 30


def format_revert_message(target: CommitRecord) -> str:
    """Format the message for a commit that restores target's tree.

    Structure:
    - Subject line: short id of the restored commit
    - Blank line
    - Subject of the restored commit
    - Blank line
    - Revert-To trailer with the full id
    """
    subject = f"Revert to {target.short_id}"
    body = f"Restores: {target.subject}" if target.subject else ""
    trailer = f"{REVERT_TRAILER}: {target.id}"
    if body:
        return f"{subject}\n\n{body}\n\n{trailer}"
    return f"{subject}\n\n{trailer}"


class HistoryManager:
    """Lists commits and reverts by appending, never by resetting."""

    def __init__(self, host: GitHost, writer: CommitWriter):
        self.host = host
        self.writer = writer

    async def list_history(self, ref: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[CommitRecord]:
        """Commits reachable from ref, newest first, at most limit of them."""
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        commits = await self.host.list_commits(ref, limit)
        return commits[:limit]

    async def revert(self, target_id: str, ref: str) -> str:
        """Make ref's content match target_id again.

        Creates a new commit whose tree is the target's tree and whose parent
        is the current head. Every existing commit stays reachable.

        Returns:
            The new commit id.
        """
        target = await self.host.get_commit(target_id)
        if not target.tree_id:
            raise ValueError(f"Commit {target_id} has no tree")
        sha = await self.writer.commit_tree(ref, target.tree_id, format_revert_message(target))
        logger.info("Reverted %s to %s as %s", ref, target.short_id, sha[:7])
        return sha
