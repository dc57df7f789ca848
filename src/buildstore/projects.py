"""Project lifecycle: initial config commit, branches, deletion."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Optional

from buildstore.config import ProjectConfig, ProjectType
from buildstore.core import FileRecord, NotFoundError
from buildstore.hosts.base import GitHost
from buildstore.store import BuildStore

logger = logging.getLogger(__name__)

Cleanup = Callable[[], Awaitable[object]]


async def initialize_project(
    store: BuildStore,
    name: str,
    project_type: ProjectType = "website",
    description: Optional[str] = None,
    files: Iterable[FileRecord] = (),
) -> tuple[ProjectConfig, str]:
    """Write the project config and any starter files in one commit.

    Returns:
        Tuple of (config, commit id).
    """
    config = ProjectConfig(name=name, type=project_type, description=description)
    records = [config.to_file(), *files]
    commit_id = await store.commit(records, f"Initialize {config.name}")
    logger.info("Initialized %s project %r at %s", project_type, config.name, commit_id[:7])
    return config, commit_id


async def branch_exists(host: GitHost, branch: str) -> bool:
    try:
        await host.get_ref(branch)
    except NotFoundError:
        return False
    return True


async def ensure_branch(host: GitHost, branch: str, from_ref: str = "main") -> bool:
    """Create branch at from_ref's head unless it already exists.

    Returns:
        True if the branch was created.
    """
    if await branch_exists(host, branch):
        return False
    head = await host.get_ref(from_ref)
    await host.create_ref(branch, head)
    logger.info("Created branch %s from %s at %s", branch, from_ref, head[:7])
    return True


async def delete_project(host: GitHost, cleanups: Iterable[Cleanup] = ()) -> list[Exception]:
    """Delete the repository, then run secondary cleanups.

    Errors from deleting the repository propagate. A failing cleanup (for
    example removing a hosting-side mirror) is logged and skipped so it never
    blocks the deletion it follows.

    Returns:
        The exceptions raised by cleanups, in order.
    """
    await host.delete_repository()

    failures: list[Exception] = []
    for cleanup in cleanups:
        try:
            await cleanup()
        except Exception as e:
            logger.warning("Project cleanup %r failed: %s", cleanup, e)
            failures.append(e)
    return failures
