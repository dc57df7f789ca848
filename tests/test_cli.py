"""Tests for buildstore.cli module."""

import re

import pytest
from click.testing import CliRunner

from buildstore.cli import main

SITE_V1 = """FILE: index.html
```html
<!DOCTYPE html>
<html><body><h1>Version one</h1></body></html>
```
"""

SITE_V2 = """FILE: index.html
```html
<!DOCTYPE html>
<html><body><h1>Version two</h1></body></html>
```
"""


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep the user's settings file and token out of CLI tests."""
    monkeypatch.setattr("buildstore.settings.CONFIG_PATH", tmp_path / "settings.yml")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def repo_path(tmp_path, runner):
    """A local project initialised through the CLI."""
    path = tmp_path / "site.git"
    result = runner.invoke(main, ["--local", str(path), "init", "Site"])
    assert result.exit_code == 0, result.output
    return path


def short_id(output):
    match = re.search(r"\b([0-9a-f]{7})\b", output)
    assert match, output
    return match.group(1)


class TestHostSelection:
    """Tests for choosing where the project lives."""

    def test_requires_repo_or_local(self, runner):
        """Should fail with a usage error when no repository is given."""
        result = runner.invoke(main, ["files"])
        assert result.exit_code == 2
        assert "--repo OWNER/NAME" in result.output

    def test_github_requires_token(self, runner):
        """Should refuse to talk to GitHub without a token."""
        result = runner.invoke(main, ["--repo", "octo/site", "files"])
        assert result.exit_code == 2
        assert "No GitHub token" in result.output

    def test_missing_local_repository(self, runner, tmp_path):
        """Should report a missing local repository."""
        result = runner.invoke(main, ["--local", str(tmp_path / "absent.git"), "files"])
        assert result.exit_code == 1
        assert "No git repository" in result.output


class TestInit:
    """Tests for the init command."""

    def test_creates_project(self, runner, repo_path):
        """Should write the project config."""
        result = runner.invoke(main, ["--local", str(repo_path), "show", ".boom/config.json"])
        assert result.exit_code == 0
        assert '"name": "Site"' in result.output
        assert '"type": "website"' in result.output

    def test_deck_type(self, runner, tmp_path):
        """Should accept the deck project type."""
        path = tmp_path / "deck.git"
        result = runner.invoke(main, ["--local", str(path), "init", "Pitch", "--type", "deck"])
        assert result.exit_code == 0
        assert "Initialized deck project 'Pitch'" in result.output

    def test_author_from_settings(self, runner, tmp_path):
        """Should sign local commits with the configured author."""
        (tmp_path / "settings.yml").write_text("author_name: Grace\nauthor_email: grace@example.com\n")
        path = tmp_path / "authored.git"
        runner.invoke(main, ["--local", str(path), "init", "Site"])

        result = runner.invoke(main, ["--local", str(path), "log", "-n", "1"])
        assert "Grace" in result.output


class TestApplyAndShow:
    """Tests for apply, files and show."""

    def test_apply_from_stdin(self, runner, repo_path):
        """Should commit FILE blocks read from stdin."""
        result = runner.invoke(main, ["--local", str(repo_path), "apply"], input=SITE_V1)
        assert result.exit_code == 0
        assert result.output.startswith("Committed ")

        files = runner.invoke(main, ["--local", str(repo_path), "files"])
        assert files.output.splitlines() == ["index.html", ".boom/config.json"]

        show = runner.invoke(main, ["--local", str(repo_path), "show", "index.html"])
        assert "Version one" in show.output

    def test_apply_from_file(self, runner, repo_path, tmp_path):
        """Should read the AI output from a file argument."""
        source = tmp_path / "reply.md"
        source.write_text(SITE_V1)
        result = runner.invoke(
            main, ["--local", str(repo_path), "apply", str(source), "-m", "From file"]
        )
        assert result.exit_code == 0

    def test_apply_without_files(self, runner, repo_path):
        """Should fail when the input has no file blocks."""
        result = runner.invoke(main, ["--local", str(repo_path), "apply"], input="No code here.")
        assert result.exit_code == 1
        assert "No file blocks" in result.output

    def test_show_missing(self, runner, repo_path):
        """Should fail for a missing file."""
        result = runner.invoke(main, ["--local", str(repo_path), "show", "nope.html"])
        assert result.exit_code == 1
        assert "No such file" in result.output


class TestPatchAndRm:
    """Tests for patch and rm."""

    def test_patch(self, runner, repo_path):
        """Should apply a find/replace and report the method."""
        runner.invoke(main, ["--local", str(repo_path), "apply"], input=SITE_V1)
        patch = "FIND: Version one\nREPLACE: Version 1.1"
        result = runner.invoke(main, ["--local", str(repo_path), "patch"], input=patch)
        assert result.exit_code == 0
        assert "Patched index.html (exact)" in result.output

        show = runner.invoke(main, ["--local", str(repo_path), "show", "index.html"])
        assert "Version 1.1" in show.output

    def test_patch_miss(self, runner, repo_path):
        """Should fail when the find text is absent."""
        result = runner.invoke(
            main, ["--local", str(repo_path), "patch"], input="FIND: nothing\nREPLACE: x"
        )
        assert result.exit_code == 1
        assert "Could not find the target text" in result.output

    def test_rm(self, runner, repo_path):
        """Should delete a file."""
        runner.invoke(main, ["--local", str(repo_path), "apply"], input=SITE_V1)
        result = runner.invoke(main, ["--local", str(repo_path), "rm", "index.html"])
        assert result.exit_code == 0
        assert "Deleted index.html" in result.output

        files = runner.invoke(main, ["--local", str(repo_path), "files"])
        assert files.output.splitlines() == [".boom/config.json"]


class TestLogAndRevert:
    """Tests for log and revert."""

    def test_log(self, runner, repo_path):
        """Should show recent commits."""
        result = runner.invoke(main, ["--local", str(repo_path), "log", "-n", "5"])
        assert result.exit_code == 0
        assert "Initialize Site" in result.output
        assert "Initial commit" in result.output

    def test_revert_by_short_id(self, runner, repo_path):
        """Should restore an earlier version as a new commit."""
        first = runner.invoke(main, ["--local", str(repo_path), "apply"], input=SITE_V1)
        first_id = short_id(first.output)
        runner.invoke(main, ["--local", str(repo_path), "apply"], input=SITE_V2)

        result = runner.invoke(main, ["--local", str(repo_path), "revert", first_id])
        assert result.exit_code == 0, result.output
        assert f"Reverted to {first_id}" in result.output

        show = runner.invoke(main, ["--local", str(repo_path), "show", "index.html"])
        assert "Version one" in show.output

        log = runner.invoke(main, ["--local", str(repo_path), "log"])
        assert f"Revert to {first_id}" in log.output

    def test_revert_unknown(self, runner, repo_path):
        """Should fail for an id not in recent history."""
        result = runner.invoke(main, ["--local", str(repo_path), "revert", "fffffff"])
        assert result.exit_code == 1
        assert "No recent commit matches" in result.output


class TestDecks:
    """Tests for the decks command."""

    def test_no_decks(self, runner, repo_path):
        """Should say when there are no decks."""
        result = runner.invoke(main, ["--local", str(repo_path), "decks"])
        assert result.exit_code == 0
        assert "No decks found." in result.output
