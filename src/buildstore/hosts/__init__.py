"""Version-control host implementations."""

from buildstore.hosts.base import GitHost, is_commit_id
from buildstore.hosts.github import GitHubHost
from buildstore.hosts.local import LocalGitHost

__all__ = ["GitHost", "GitHubHost", "LocalGitHost", "is_commit_id"]
