"""GitHub host using the REST Git Data API."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from buildstore.core import (
    BlobPayload,
    CommitRecord,
    ConflictError,
    NotFoundError,
    TreeEntry,
    UpstreamError,
)
from buildstore.hosts.base import BLOB_MODE, GitHost

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT = 30.0
MAX_PER_PAGE = 100


def get_api_headers(token: str) -> dict[str, str]:
    """Build API request headers."""
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
    }


def create_client(token: str, base_url: str = API_BASE_URL, **kwargs: Any) -> httpx.AsyncClient:
    """Create an AsyncClient configured for the GitHub API."""
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    return httpx.AsyncClient(base_url=base_url, headers=get_api_headers(token), **kwargs)


def _commit_from_git_data(data: dict[str, Any]) -> CommitRecord:
    parents = data.get("parents") or []
    author = data.get("author") or {}
    return CommitRecord(
        id=data["sha"],
        message=data.get("message", ""),
        author=author.get("name", ""),
        timestamp=author.get("date", ""),
        parent_id=parents[0]["sha"] if parents else None,
        tree_id=(data.get("tree") or {}).get("sha"),
    )


def _commit_from_listing(item: dict[str, Any]) -> CommitRecord:
    commit = item.get("commit") or {}
    parents = item.get("parents") or []
    author = commit.get("author") or {}
    return CommitRecord(
        id=item["sha"],
        message=commit.get("message", ""),
        author=author.get("name", ""),
        timestamp=author.get("date", ""),
        parent_id=parents[0]["sha"] if parents else None,
        tree_id=(commit.get("tree") or {}).get("sha"),
    )


class GitHubHost(GitHost):
    """A single GitHub repository.

    The client is passed in explicitly; use ``connect`` to have the host
    own (and close) its client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        owner: str,
        repo: str,
        owns_client: bool = False,
    ):
        self.client = client
        self.owner = owner
        self.repo = repo
        self._owns_client = owns_client

    @classmethod
    def connect(
        cls, token: str, owner: str, repo: str, base_url: str = API_BASE_URL
    ) -> GitHubHost:
        """Create a host with its own client."""
        return cls(create_client(token, base_url), owner, repo, owns_client=True)

    @classmethod
    async def create_repository(
        cls,
        client: httpx.AsyncClient,
        name: str,
        description: str = "",
        private: bool = False,
    ) -> GitHubHost:
        """Create an auto-initialised repository for the authenticated user."""
        payload = {
            "name": name,
            "description": description,
            "private": private,
            "auto_init": True,
        }
        try:
            response = await client.post("/user/repos", json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to create repository {name}: {e}") from e
        if response.status_code == 422:
            raise ConflictError(f"Repository {name} already exists")
        if response.is_error:
            raise UpstreamError(
                f"Failed to create repository {name}: HTTP {response.status_code}"
            )
        data = response.json()
        logger.info("Created repository %s", data.get("full_name", name))
        return cls(client, data["owner"]["login"], data["name"])

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _repo_path(self, suffix: str) -> str:
        return f"/repos/{self.owner}/{self.repo}{suffix}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        not_found: tuple[int, ...] = (404,),
        conflict: tuple[int, ...] = (),
        ref: Optional[str] = None,
    ) -> Any:
        """Send a request and map failures onto the host error types."""
        logger.debug("%s %s", method, path)
        try:
            response = await self.client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(f"{method} {path} failed: {e}") from e

        if response.status_code in not_found:
            raise NotFoundError(f"{method} {path}: not found ({response.status_code})")
        if response.status_code in conflict:
            raise ConflictError(
                f"{method} {path}: rejected ({response.status_code})", ref=ref
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(f"{method} {path} failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get_ref(self, ref: str) -> str:
        # An empty repository answers 409 rather than 404.
        data = await self._request(
            "GET", self._repo_path(f"/git/ref/heads/{ref}"), not_found=(404, 409)
        )
        return data["object"]["sha"]

    async def get_commit(self, sha: str) -> CommitRecord:
        data = await self._request("GET", self._repo_path(f"/git/commits/{sha}"))
        return _commit_from_git_data(data)

    async def get_tree(self, sha: str) -> list[TreeEntry]:
        data = await self._request("GET", self._repo_path(f"/git/trees/{sha}"))
        if data.get("truncated"):
            logger.warning("Tree %s listing was truncated by the host", sha)
        return [
            TreeEntry(
                path=item["path"],
                type=item["type"],
                sha=item["sha"],
                mode=item.get("mode", BLOB_MODE),
            )
            for item in data.get("tree", [])
        ]

    async def get_blob(self, sha: str) -> BlobPayload:
        data = await self._request("GET", self._repo_path(f"/git/blobs/{sha}"))
        return BlobPayload(content=data.get("content", ""), encoding=data.get("encoding", "base64"))

    async def create_blob(self, content: str, encoding: str) -> str:
        data = await self._request(
            "POST",
            self._repo_path("/git/blobs"),
            json={"content": content, "encoding": encoding},
        )
        return data["sha"]

    async def create_tree(self, base_tree: Optional[str], entries: list[TreeEntry]) -> str:
        payload: dict[str, Any] = {
            "tree": [
                {"path": entry.path, "mode": entry.mode, "type": entry.type, "sha": entry.sha}
                for entry in entries
            ]
        }
        if base_tree:
            payload["base_tree"] = base_tree
        data = await self._request("POST", self._repo_path("/git/trees"), json=payload)
        return data["sha"]

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> str:
        data = await self._request(
            "POST",
            self._repo_path("/git/commits"),
            json={"message": message, "tree": tree, "parents": parents},
        )
        return data["sha"]

    async def update_ref(self, ref: str, sha: str) -> None:
        # force=False makes the host reject anything but a fast-forward (422).
        await self._request(
            "PATCH",
            self._repo_path(f"/git/refs/heads/{ref}"),
            json={"sha": sha, "force": False},
            conflict=(409, 422),
            ref=ref,
        )

    async def create_ref(self, ref: str, sha: str) -> None:
        await self._request(
            "POST",
            self._repo_path("/git/refs"),
            json={"ref": f"refs/heads/{ref}", "sha": sha},
            conflict=(422,),
            ref=ref,
        )

    async def list_commits(self, ref: str, limit: int) -> list[CommitRecord]:
        per_page = min(limit, MAX_PER_PAGE)
        commits: list[CommitRecord] = []
        page = 1
        # Page until limit is reached or a short page marks the end of history.
        while len(commits) < limit:
            data = await self._request(
                "GET",
                self._repo_path("/commits"),
                params={"sha": ref, "per_page": per_page, "page": page},
                not_found=(404, 409),
            )
            commits.extend(_commit_from_listing(item) for item in data)
            if len(data) < per_page:
                break
            page += 1
        return commits[:limit]

    async def delete_file(self, ref: str, path: str, blob_sha: str, message: str) -> str:
        data = await self._request(
            "DELETE",
            self._repo_path(f"/contents/{quote(path)}"),
            json={"message": message, "sha": blob_sha, "branch": ref},
            conflict=(409,),
            ref=ref,
        )
        return data["commit"]["sha"]

    async def delete_repository(self) -> None:
        await self._request("DELETE", self._repo_path(""))
        logger.info("Deleted repository %s", self.full_name)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
