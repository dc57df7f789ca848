"""Tests for buildstore.hosts.local module."""

import base64

import pytest

from buildstore.core import ConflictError, FileRecord, NotFoundError, TreeEntry, UpstreamError
from buildstore.hosts.base import is_commit_id
from buildstore.hosts.local import LocalGitHost


class TestIsCommitId:
    """Tests for is_commit_id function."""

    def test_full_hex(self):
        """Should accept a 40-character lowercase hex id."""
        assert is_commit_id("a" * 40)

    def test_branch_names(self):
        """Should reject branch names and short ids."""
        assert not is_commit_id("main")
        assert not is_commit_id("abc1234")
        assert not is_commit_id("g" * 40)


class TestInit:
    """Tests for LocalGitHost.init and construction."""

    @pytest.mark.asyncio
    async def test_root_commit(self, tmp_path):
        """Should create a branch with one commit and an empty tree."""
        host = LocalGitHost.init(tmp_path / "site.git", branch="trunk")
        head = await host.get_ref("trunk")
        commit = await host.get_commit(head)
        assert commit.parent_id is None
        assert await host.get_tree(commit.tree_id) == []

    def test_missing_repository(self, tmp_path):
        """Should raise NotFoundError when there is no repository."""
        with pytest.raises(NotFoundError):
            LocalGitHost(tmp_path / "nothing-here")

    @pytest.mark.asyncio
    async def test_delete_repository(self, tmp_path):
        """Should remove the repository from disk."""
        path = tmp_path / "doomed.git"
        host = LocalGitHost.init(path)
        await host.delete_repository()
        assert not path.exists()


class TestObjects:
    """Tests for blob, tree and commit primitives."""

    @pytest.mark.asyncio
    async def test_blob_round_trip(self, local_host):
        """Should store a blob and return it base64 encoded."""
        sha = await local_host.create_blob(base64.b64encode(b"hello").decode(), "base64")
        payload = await local_host.get_blob(sha)
        assert payload.encoding == "base64"
        assert base64.b64decode(payload.content) == b"hello"

    @pytest.mark.asyncio
    async def test_invalid_blob_encoding(self, local_host):
        """Should reject unknown payload encodings."""
        with pytest.raises(UpstreamError):
            await local_host.create_blob("abc", "rot13")

    @pytest.mark.asyncio
    async def test_get_blob_wrong_type(self, local_host):
        """Should raise NotFoundError when the id is not a blob."""
        head = await local_host.get_ref("main")
        with pytest.raises(NotFoundError):
            await local_host.get_blob(head)

    @pytest.mark.asyncio
    async def test_create_tree_nested(self, local_host):
        """Should build intermediate directories from full paths."""
        sha = await local_host.create_blob("YQ==", "base64")
        tree = await local_host.create_tree(
            None, [TreeEntry(path="a/b/c.txt", type="blob", sha=sha)]
        )
        top = await local_host.get_tree(tree)
        assert [(e.path, e.type) for e in top] == [("a", "tree")]

    @pytest.mark.asyncio
    async def test_create_tree_unknown_blob(self, local_host):
        """Should reject entries pointing at missing blobs."""
        with pytest.raises(NotFoundError):
            await local_host.create_tree(None, [TreeEntry("a.txt", "blob", "1" * 40)])

    @pytest.mark.asyncio
    async def test_get_ref_missing(self, local_host):
        """Should raise NotFoundError for an unknown branch."""
        with pytest.raises(NotFoundError):
            await local_host.get_ref("feature")


class TestGetTree:
    """Tests for listing trees with content."""

    @pytest.mark.asyncio
    async def test_lists_files_and_directories(self, local_host):
        """Should list blobs and subtrees of a non-empty tree."""
        sha = await local_host.create_blob("aGVsbG8=", "base64")
        tree = await local_host.create_tree(
            None,
            [
                TreeEntry(path="index.html", type="blob", sha=sha),
                TreeEntry(path="css/site.css", type="blob", sha=sha),
            ],
        )
        entries = await local_host.get_tree(tree)
        assert [(e.path, e.type) for e in entries] == [("css", "tree"), ("index.html", "blob")]
        assert entries[1].sha == sha
        assert entries[1].mode == "100644"

        nested = await local_host.get_tree(entries[0].sha)
        assert [(e.path, e.type) for e in nested] == [("site.css", "blob")]

    @pytest.mark.asyncio
    async def test_store_round_trip(self, store):
        """Should read back a committed file through the store."""
        await store.commit([FileRecord("a.txt", "hello")], "Add")
        assert (await store.fetch_tree()).as_dict() == {"a.txt": "hello"}


class TestTreeOverlay:
    """Tests for overlaying entries that clash with existing paths."""

    async def _root_entries(self, host):
        head = await host.get_commit(await host.get_ref("main"))
        return [(e.path, e.type) for e in await host.get_tree(head.tree_id)]

    @pytest.mark.asyncio
    async def test_directory_replaces_file(self, store, local_host):
        """Should replace a file with a directory of the same name."""
        await store.commit([FileRecord("site", "plain file")], "File")
        await store.commit([FileRecord("site/index.html", "<p>page</p>")], "Directory")

        assert await self._root_entries(local_host) == [("site", "tree")]
        assert (await store.fetch_tree()).as_dict() == {"site/index.html": "<p>page</p>"}
        local_host.repo.git.fsck("--full")

    @pytest.mark.asyncio
    async def test_file_replaces_directory(self, store, local_host):
        """Should replace a directory with a file of the same name."""
        await store.commit(
            [FileRecord("docs/a.md", "a"), FileRecord("docs/b/c.md", "c")], "Directory"
        )
        await store.commit([FileRecord("docs", "now a file")], "File")

        assert await self._root_entries(local_host) == [("docs", "blob")]
        local_host.repo.git.fsck("--full")

    @pytest.mark.asyncio
    async def test_siblings_kept(self, store, local_host):
        """Should leave paths that only share a name prefix alone."""
        await store.commit(
            [FileRecord("site.md", "s"), FileRecord("site-old/index.html", "o")], "Add"
        )
        await store.commit([FileRecord("site/index.html", "n")], "Add dir")

        assert (await store.fetch_tree()).as_dict() == {
            "site.md": "s",
            "site-old/index.html": "o",
            "site/index.html": "n",
        }


class TestRefs:
    """Tests for ref updates."""

    async def _child_commit(self, host, parent, message="child"):
        tree = (await host.get_commit(parent)).tree_id
        return await host.create_commit(message, tree, [parent])

    @pytest.mark.asyncio
    async def test_fast_forward(self, local_host):
        """Should move the branch to a descendant."""
        head = await local_host.get_ref("main")
        child = await self._child_commit(local_host, head)
        await local_host.update_ref("main", child)
        assert await local_host.get_ref("main") == child

    @pytest.mark.asyncio
    async def test_non_fast_forward(self, local_host):
        """Should reject moving the branch to a non-descendant."""
        head = await local_host.get_ref("main")
        first = await self._child_commit(local_host, head)
        sibling = await self._child_commit(local_host, head, "sibling")
        await local_host.update_ref("main", first)

        with pytest.raises(ConflictError):
            await local_host.update_ref("main", sibling)
        assert await local_host.get_ref("main") == first

    @pytest.mark.asyncio
    async def test_create_ref(self, local_host):
        """Should create a new branch and refuse to overwrite it."""
        head = await local_host.get_ref("main")
        await local_host.create_ref("staging", head)
        assert await local_host.get_ref("staging") == head

        with pytest.raises(ConflictError):
            await local_host.create_ref("staging", head)


class TestDeleteFile:
    """Tests for LocalGitHost.delete_file."""

    @pytest.mark.asyncio
    async def test_sha_mismatch(self, store, local_host):
        """Should refuse when the blob id is not current."""
        await store.commit([FileRecord("a.html", "a")], "Add")
        head = await local_host.get_ref("main")
        with pytest.raises(ConflictError):
            await local_host.delete_file("main", "a.html", "0" * 40, "Delete")
        assert await local_host.get_ref("main") == head

    @pytest.mark.asyncio
    async def test_missing_path(self, local_host):
        """Should raise NotFoundError for a missing path."""
        with pytest.raises(NotFoundError):
            await local_host.delete_file("main", "a.html", "0" * 40, "Delete")
