"""CLI for buildstore."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Awaitable, Callable, Optional, TypeVar

import click

from buildstore.core import BuildStoreError
from buildstore.hosts.base import GitHost
from buildstore.settings import Settings, get_settings, resolve_token
from buildstore.store import BuildStore

T = TypeVar("T")


@dataclass
class HostOptions:
    """Where the project lives, collected from the top-level options."""

    repo_name: Optional[str]
    local_path: Optional[Path]
    token: Optional[str]
    ref: str
    settings: Settings


def make_host(options: HostOptions, create: bool = False) -> GitHost:
    """Build the host described by the options.

    Args:
        options: Parsed top-level options.
        create: For --local, initialise the repository if it does not exist.
    """
    if options.local_path is not None:
        from git import Actor

        from buildstore.hosts.local import DEFAULT_AUTHOR, LocalGitHost

        settings = options.settings
        author = DEFAULT_AUTHOR
        if settings.author_name:
            author = Actor(settings.author_name, settings.author_email or DEFAULT_AUTHOR.email)

        if create and not options.local_path.exists():
            return LocalGitHost.init(options.local_path, branch=options.ref, author=author)
        return LocalGitHost(options.local_path, author=author)

    if not options.repo_name or "/" not in options.repo_name:
        raise click.UsageError("Specify --repo OWNER/NAME or --local PATH.")

    token = resolve_token(options.token, options.settings)
    if not token:
        raise click.UsageError(
            "No GitHub token found. Pass --token, set GITHUB_TOKEN, "
            "or add 'token' to ~/.buildstore/config.yml."
        )

    from buildstore.hosts.github import GitHubHost

    owner, repo = options.repo_name.split("/", 1)
    return GitHubHost.connect(token, owner, repo, base_url=options.settings.api_url)


def run_with_store(
    options: HostOptions,
    action: Callable[[BuildStore], Awaitable[T]],
    create: bool = False,
) -> T:
    """Open the host, run action against a store, and close the host."""

    async def runner() -> T:
        host = make_host(options, create=create)
        async with host:
            return await action(BuildStore(host, ref=options.ref))

    try:
        return asyncio.run(runner())
    except BuildStoreError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--repo", "repo_name", help="GitHub repository as OWNER/NAME.")
@click.option(
    "--local",
    "local_path",
    type=click.Path(path_type=Path),
    help="Use a bare git repository on disk instead of GitHub.",
)
@click.option("--token", help="GitHub token. Defaults to GITHUB_TOKEN or the settings file.")
@click.option("--ref", default=None, help="Branch to work on. Defaults to 'main'.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(package_name="buildstore")
@click.pass_context
def main(
    ctx: click.Context,
    repo_name: Optional[str],
    local_path: Optional[Path],
    token: Optional[str],
    ref: Optional[str],
    verbose: bool,
) -> None:
    """Store AI-generated site and deck files as commits in a git repository.

    Examples:

        buildstore --repo me/site files              # List project files

        buildstore --repo me/site apply reply.md     # Commit FILE: blocks

        buildstore --local ./site.git log -n 5       # Recent history
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = get_settings()
    ctx.obj = HostOptions(
        repo_name=repo_name,
        local_path=local_path,
        token=token,
        ref=ref or settings.default_ref,
        settings=settings,
    )


@main.command()
@click.argument("name")
@click.option(
    "-t",
    "--type",
    "project_type",
    type=click.Choice(["website", "deck"]),
    default="website",
    help="Project kind.",
)
@click.option("-d", "--description", help="Short project description.")
@click.pass_obj
def init(options: HostOptions, name: str, project_type: str, description: Optional[str]) -> None:
    """Write the project config. Creates a --local repository if needed."""
    from buildstore.projects import initialize_project

    config, commit_id = run_with_store(
        options,
        lambda store: initialize_project(store, name, project_type, description),
        create=True,
    )
    click.echo(f"Initialized {config.type} project '{config.name}' at {commit_id[:7]}")


@main.command()
@click.pass_obj
def files(options: HostOptions) -> None:
    """List the project's files."""
    snapshot = run_with_store(options, lambda store: store.fetch_tree())
    for path in snapshot.paths:
        click.echo(path)


@main.command()
@click.argument("path")
@click.pass_obj
def show(options: HostOptions, path: str) -> None:
    """Print one file's content."""
    content = run_with_store(options, lambda store: store.read_file(path))
    if content is None:
        raise click.ClickException(f"No such file: {path}")
    click.echo(content)


@main.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("-m", "--message", help="Commit message.")
@click.pass_obj
def apply(options: HostOptions, source: IO[str], message: Optional[str]) -> None:
    """Commit every FILE: block in AI output read from SOURCE."""
    text = source.read()
    commit_id = run_with_store(options, lambda store: store.apply_generation(text, message))
    if commit_id is None:
        raise click.ClickException("No file blocks found in input; nothing committed.")
    click.echo(f"Committed {commit_id[:7]}")


@main.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("-m", "--message", help="Commit message.")
@click.pass_obj
def patch(options: HostOptions, source: IO[str], message: Optional[str]) -> None:
    """Apply a PATCH (FIND/REPLACE) response read from SOURCE."""
    text = source.read()
    result, commit_id = run_with_store(options, lambda store: store.apply_patch(text, message))
    if not result.success:
        raise click.ClickException(result.error or "Patch failed")
    click.echo(f"Patched {result.modified_file.path} ({result.method}) in {commit_id[:7]}")


@main.command()
@click.argument("path")
@click.option("-m", "--message", help="Commit message.")
@click.pass_obj
def rm(options: HostOptions, path: str, message: Optional[str]) -> None:
    """Delete one file in its own commit."""
    commit_id = run_with_store(options, lambda store: store.delete_file(path, message))
    click.echo(f"Deleted {path} in {commit_id[:7]}")


@main.command()
@click.option("-n", "--limit", default=20, show_default=True, help="Number of commits.")
@click.pass_obj
def log(options: HostOptions, limit: int) -> None:
    """Show recent commits, newest first."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    commits = run_with_store(options, lambda store: store.list_history(limit))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Commit", style="yellow", no_wrap=True)
    table.add_column("Date", style="dim", no_wrap=True)
    table.add_column("Author")
    table.add_column("Message")

    for commit in commits:
        subject = escape(commit.subject)
        if commit.revert_target:
            subject = f"{subject} [dim](restores {commit.revert_target[:7]})[/dim]"
        table.add_row(commit.short_id, commit.timestamp[:19], commit.author, subject)

    Console().print(table)


@main.command()
@click.argument("commit")
@click.pass_obj
def revert(options: HostOptions, commit: str) -> None:
    """Restore the content of COMMIT as a new commit."""
    commit_id = run_with_store(options, lambda store: _revert(store, commit))
    click.echo(f"Reverted to {commit[:7]} as {commit_id[:7]}")


async def _revert(store: BuildStore, commit: str) -> str:
    # Accept abbreviated ids by matching against recent history.
    if len(commit) < 40:
        for record in await store.list_history(100):
            if record.id.startswith(commit):
                commit = record.id
                break
        else:
            raise click.ClickException(f"No recent commit matches {commit}")
    return await store.revert(commit)


@main.command()
@click.pass_obj
def decks(options: HostOptions) -> None:
    """List slide decks stored in the project."""
    from buildstore.decks import list_decks

    found = run_with_store(options, lambda store: list_decks(store))
    if not found:
        click.echo("No decks found.")
        return
    for deck in found:
        click.echo(f"{deck.slug}  {deck.name}  ({len(deck.slides)} slides)")
