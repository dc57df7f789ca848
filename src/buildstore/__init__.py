"""buildstore - Store AI-generated project files as commits in a hosted git repository."""

from __future__ import annotations

from buildstore.codec import ContentCodec
from buildstore.core import (
    BuildStoreError,
    CommitRecord,
    ConflictError,
    FileRecord,
    HostError,
    MalformedConfigError,
    NotFoundError,
    PatchRequest,
    PatchResult,
    TreeSnapshot,
    UpstreamError,
)
from buildstore.history import HistoryManager
from buildstore.hosts import GitHost, GitHubHost, LocalGitHost
from buildstore.parser import dedupe_files, parse_generated_files, parse_patch_request
from buildstore.patch import apply_patch, apply_patch_response
from buildstore.reader import TreeReader
from buildstore.store import BuildStore
from buildstore.writer import CommitWriter

__version__ = "0.1.0"

__all__ = [
    # Core types
    "FileRecord",
    "TreeSnapshot",
    "CommitRecord",
    "PatchRequest",
    "PatchResult",
    "ContentCodec",
    # Errors
    "BuildStoreError",
    "HostError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
    "MalformedConfigError",
    # Hosts
    "GitHost",
    "GitHubHost",
    "LocalGitHost",
    # Components
    "TreeReader",
    "CommitWriter",
    "HistoryManager",
    "BuildStore",
    # Pure functions
    "parse_generated_files",
    "parse_patch_request",
    "dedupe_files",
    "apply_patch",
    "apply_patch_response",
]
