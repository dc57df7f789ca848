"""Remote tree reader: loads a project's file snapshot from the host."""

from __future__ import annotations

import logging
from typing import Optional

from buildstore.codec import DEFAULT_CODEC, ContentCodec
from buildstore.core import FileRecord, NotFoundError, TreeEntry, TreeSnapshot
from buildstore.hosts.base import GitHost, is_commit_id

logger = logging.getLogger(__name__)

RELEVANT_EXTENSIONS = frozenset(
    {
        # markup
        ".html",
        ".htm",
        ".astro",
        # styles
        ".css",
        ".scss",
        # scripts
        ".js",
        ".jsx",
        ".mjs",
        ".ts",
        ".tsx",
        # structured config
        ".json",
        ".yaml",
        ".yml",
        ".toml",
        # text
        ".md",
        ".mdx",
        ".txt",
    }
)

IGNORED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".astro",
        ".next",
        ".cache",
        ".vercel",
        ".wrangler",
        "__pycache__",
    }
)


def is_relevant_file(path: str) -> bool:
    """Check if a file path has an allow-listed extension."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return False
    return "." + name.rsplit(".", 1)[-1].lower() in RELEVANT_EXTENSIONS


def is_ignored_dir(path: str) -> bool:
    """Check if any segment of a directory path is a build/vendor/cache dir."""
    return any(segment in IGNORED_DIRS for segment in path.split("/"))


def _join(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


class TreeReader:
    """Reads file snapshots from a host.

    Args:
        host: Repository to read from.
        codec: Decoder for blob payloads.
    """

    def __init__(self, host: GitHost, codec: ContentCodec = DEFAULT_CODEC):
        self.host = host
        self.codec = codec

    async def resolve_commit(self, ref: str) -> str:
        """Resolve a branch name or commit id to a commit id."""
        if is_commit_id(ref):
            return ref
        return await self.host.get_ref(ref)

    async def root_tree(self, ref: str) -> Optional[str]:
        """Tree id at ref, or None if the repository or ref does not exist."""
        try:
            commit_id = await self.resolve_commit(ref)
            commit = await self.host.get_commit(commit_id)
        except NotFoundError:
            logger.debug("No commit at %s; treating as empty project", ref)
            return None
        return commit.tree_id

    async def fetch_tree(self, ref: str) -> TreeSnapshot:
        """Fetch every relevant file at ref.

        Returns:
            The snapshot, empty if the repository or ref does not exist yet.
        """
        tree_id = await self.root_tree(ref)
        if tree_id is None:
            return TreeSnapshot()

        files: list[FileRecord] = []
        visited: set[str] = set()
        pending: list[tuple[str, str]] = [("", tree_id)]

        # Depth-first, preserving the host's entry order within each directory.
        while pending:
            dir_path, sha = pending.pop()
            if dir_path in visited:
                continue
            visited.add(dir_path)

            try:
                entries = await self.host.get_tree(sha)
            except NotFoundError:
                logger.debug("Tree %s for %r vanished; skipping", sha, dir_path or "/")
                continue

            subdirs = []
            for entry in entries:
                path = _join(dir_path, entry.path)
                if entry.type == "tree":
                    if not is_ignored_dir(path):
                        subdirs.append((path, entry.sha))
                elif entry.type == "blob" and is_relevant_file(path):
                    payload = await self.host.get_blob(entry.sha)
                    files.append(FileRecord(path=path, content=self.codec.decode(payload)))
            pending.extend(reversed(subdirs))

        logger.debug("Fetched %d files at %s", len(files), ref)
        return TreeSnapshot(files)

    async def find_entry(self, ref: str, path: str) -> Optional[TreeEntry]:
        """Look up the tree entry for a file path at ref.

        Returns:
            The entry with its full path, or None if any segment is missing.
        """
        tree_id = await self.root_tree(ref)
        if tree_id is None:
            return None

        *dirs, name = path.strip("/").split("/")
        for segment in dirs:
            entries = await self.host.get_tree(tree_id)
            match = next((e for e in entries if e.path == segment and e.type == "tree"), None)
            if match is None:
                return None
            tree_id = match.sha

        for entry in await self.host.get_tree(tree_id):
            if entry.path == name and entry.type == "blob":
                return TreeEntry(path=path, type=entry.type, sha=entry.sha, mode=entry.mode)
        return None

    async def read_file(self, ref: str, path: str) -> Optional[str]:
        """Read one file's content at ref, or None if it does not exist."""
        entry = await self.find_entry(ref, path)
        if entry is None:
            return None
        return self.codec.decode(await self.host.get_blob(entry.sha))
