"""Host backed by a bare git repository on the local filesystem."""

from __future__ import annotations

import logging
import shutil
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from git import Actor, Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git.index import IndexFile
from git.index.typ import BaseIndexEntry, IndexEntry
from git.objects import Blob, Commit, Tree
from gitdb.base import IStream

from buildstore.codec import bytes_to_payload, payload_to_bytes
from buildstore.core import (
    BlobPayload,
    CommitRecord,
    ConflictError,
    NotFoundError,
    TreeEntry,
    UpstreamError,
)
from buildstore.hosts.base import GitHost, is_commit_id

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DEFAULT_AUTHOR = Actor("Build Store", "buildstore@local")


def _record_from_commit(commit: Commit) -> CommitRecord:
    return CommitRecord(
        id=commit.hexsha,
        message=commit.message,
        author=commit.author.name or "",
        timestamp=commit.authored_datetime.isoformat(),
        parent_id=commit.parents[0].hexsha if commit.parents else None,
        tree_id=commit.tree.hexsha,
    )


def _drop_conflicts(index: IndexFile, path: str) -> None:
    """Remove index entries that would clash with a file at path.

    A file replaces any directory of the same name, and any file standing
    where one of its parent directories must go.
    """
    parts = path.split("/")
    parents = {"/".join(parts[:i]) for i in range(1, len(parts))}
    prefix = path + "/"
    for key in [k for k in index.entries if k[0] in parents or k[0].startswith(prefix)]:
        del index.entries[key]


class LocalGitHost(GitHost):
    """A bare repository on disk, with the same semantics as a remote host.

    GitPython calls are blocking and run directly on the event loop, so
    concurrent calls against this host execute one at a time.
    """

    def __init__(self, path: Union[Path, str], author: Actor = DEFAULT_AUTHOR):
        self.path = Path(path)
        self.author = author
        try:
            self.repo = Repo(self.path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotFoundError(f"No git repository at {self.path}") from e

    @classmethod
    def init(
        cls,
        path: Union[Path, str],
        branch: str = DEFAULT_BRANCH,
        author: Actor = DEFAULT_AUTHOR,
    ) -> LocalGitHost:
        """Create a bare repository with one empty root commit on branch."""
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        repo = Repo.init(path, bare=True)
        tree = IndexFile(repo, str(path / "buildstore-init.index")).write_tree()
        commit = Commit.create_from_tree(
            repo,
            tree,
            "Initial commit",
            parent_commits=[],
            head=False,
            author=author,
            committer=author,
        )
        repo.git.update_ref(f"refs/heads/{branch}", commit.hexsha)
        repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
        logger.debug("Initialised bare repository at %s", path)
        return cls(path, author=author)

    def _rev(self, ref: str) -> str:
        return ref if is_commit_id(ref) else f"refs/heads/{ref}"

    def _resolve(self, ref: str) -> str:
        try:
            return self.repo.git.rev_parse("--verify", "--quiet", f"{self._rev(ref)}^{{commit}}")
        except GitCommandError as e:
            raise NotFoundError(f"Ref not found: {ref}") from e

    def _require_object(self, sha: str, kind: str) -> bytes:
        try:
            binsha = bytes.fromhex(sha)
            object_type = self.repo.git.cat_file("-t", sha)
        except (ValueError, GitCommandError) as e:
            raise NotFoundError(f"{kind.capitalize()} not found: {sha}") from e
        if object_type != kind:
            raise NotFoundError(f"{sha} is a {object_type}, not a {kind}")
        return binsha

    def _tree(self, sha: str) -> Tree:
        # repo.tree() leaves path unset, which breaks iteration.
        return Tree(self.repo, bytes.fromhex(sha), Tree.tree_id << 12, "")

    def _write_tree(
        self,
        base_tree: Optional[str],
        entries: list[TreeEntry],
        removals: tuple[str, ...] = (),
    ) -> str:
        if base_tree:
            index = IndexFile.from_tree(self.repo, base_tree)
        else:
            index = IndexFile(self.repo, str(self.path / "buildstore-empty.index"))
        for entry in entries:
            _drop_conflicts(index, entry.path)
            base = BaseIndexEntry((int(entry.mode, 8), bytes.fromhex(entry.sha), 0, entry.path))
            index.entries[(entry.path, 0)] = IndexEntry.from_base(base)
        for path in removals:
            index.entries.pop((path, 0), None)
        return index.write_tree().hexsha

    async def get_ref(self, ref: str) -> str:
        return self._resolve(ref)

    async def get_commit(self, sha: str) -> CommitRecord:
        self._require_object(sha, "commit")
        return _record_from_commit(self.repo.commit(sha))

    async def get_tree(self, sha: str) -> list[TreeEntry]:
        self._require_object(sha, "tree")
        return [
            TreeEntry(path=item.name, type=item.type, sha=item.hexsha, mode=f"{item.mode:o}")
            for item in self._tree(sha)
        ]

    async def get_blob(self, sha: str) -> BlobPayload:
        binsha = self._require_object(sha, "blob")
        return bytes_to_payload(self.repo.odb.stream(binsha).read())

    async def create_blob(self, content: str, encoding: str) -> str:
        try:
            data = payload_to_bytes(content, encoding)
        except ValueError as e:
            raise UpstreamError(f"Invalid blob payload: {e}") from e
        istream = self.repo.odb.store(IStream(Blob.type, len(data), BytesIO(data)))
        return istream.binsha.hex()

    async def create_tree(self, base_tree: Optional[str], entries: list[TreeEntry]) -> str:
        if base_tree:
            self._require_object(base_tree, "tree")
        for entry in entries:
            self._require_object(entry.sha, "blob")
        return self._write_tree(base_tree, entries)

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        self._require_object(tree, "tree")
        parent_commits = []
        for parent in parents:
            self._require_object(parent, "commit")
            parent_commits.append(self.repo.commit(parent))
        commit = Commit.create_from_tree(
            self.repo,
            self._tree(tree),
            message,
            parent_commits=parent_commits,
            head=False,
            author=self.author,
            committer=self.author,
        )
        return commit.hexsha

    async def update_ref(self, ref: str, sha: str) -> None:
        current = self._resolve(ref)
        self._require_object(sha, "commit")
        if not self.repo.is_ancestor(current, sha):
            raise ConflictError(
                f"Update of {ref} to {sha[:7]} is not a fast-forward", ref=ref, expected=current
            )
        try:
            # Compare-and-swap against the head we just checked.
            self.repo.git.update_ref(self._rev(ref), sha, current)
        except GitCommandError as e:
            raise ConflictError(f"{ref} moved during update", ref=ref, expected=current) from e

    async def create_ref(self, ref: str, sha: str) -> None:
        self._require_object(sha, "commit")
        try:
            # An empty old value means the ref must not exist yet.
            self.repo.git.update_ref(self._rev(ref), sha, "")
        except GitCommandError as e:
            raise ConflictError(f"Ref already exists: {ref}", ref=ref) from e

    async def list_commits(self, ref: str, limit: int) -> list[CommitRecord]:
        head = self._resolve(ref)
        return [
            _record_from_commit(commit)
            for commit in self.repo.iter_commits(head, max_count=limit)
        ]

    async def delete_file(self, ref: str, path: str, blob_sha: str, message: str) -> str:
        head = self._resolve(ref)
        commit = self.repo.commit(head)
        try:
            current = commit.tree[path]
        except KeyError as e:
            raise NotFoundError(f"Path not found: {path}") from e
        if current.hexsha != blob_sha:
            raise ConflictError(
                f"{path} does not match {blob_sha[:7]}", ref=ref, expected=head
            )
        tree = self._write_tree(commit.tree.hexsha, [], removals=(path,))
        new_sha = await self.create_commit(message, tree, [head])
        await self.update_ref(ref, new_sha)
        return new_sha

    async def delete_repository(self) -> None:
        self.repo.close()
        shutil.rmtree(self.path)
        logger.info("Deleted repository at %s", self.path)

    async def aclose(self) -> None:
        self.repo.close()
