"""Shared fixtures for buildstore tests."""

import pytest

from buildstore.hosts.local import LocalGitHost
from buildstore.store import BuildStore


@pytest.fixture
def local_host(tmp_path):
    """A bare repository with one empty root commit on main."""
    host = LocalGitHost.init(tmp_path / "remote.git")
    yield host
    host.repo.close()


@pytest.fixture
def store(local_host):
    """A BuildStore over the local host, working on main."""
    return BuildStore(local_host)
