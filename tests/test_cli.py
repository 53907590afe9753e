"""Tests for the repo-scm command line."""

import json

import pytest
from click.testing import CliRunner

from repo_scm.cli.main import main
from repo_scm.core.codec import save_changelog
from repo_scm.models.commit_entry import ADDED_NOTE, CommitEntry, ModifiedFile

MANIFEST = """<manifest>
  <project origin="git@host:group/project.git" branch="main" />
  <module name="foo" origin="../foo" />
  <module name="lib" local="libs" origin="https://host/group/lib.git" branch="stable" />
</manifest>
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(temp_dir):
    (temp_dir / "repo.xml").write_text(MANIFEST)
    return temp_dir


def test_resolve_json(runner, workspace):
    result = runner.invoke(main, ["resolve", "--workspace", str(workspace), "--json"])

    assert result.exit_code == 0, result.output
    document = json.loads(result.output)
    assert document["branch"] == "main"
    assert document["project"]["origin"] == "git@host:group/project.git"
    assert [m["path"] for m in document["modules"]] == ["./foo", "libs/lib"]
    assert document["modules"][0]["origin"] == "git@host:group/foo.git"
    assert document["modules"][1]["branch"] == "stable"


def test_resolve_table(runner, workspace):
    result = runner.invoke(main, ["resolve", "--workspace", str(workspace)])

    assert result.exit_code == 0, result.output
    assert "Manifest on branch main" in result.output


def test_resolve_bad_manifest_aborts(runner, temp_dir):
    (temp_dir / "repo.xml").write_text("<manifest><project /></manifest>")

    result = runner.invoke(main, ["resolve", "--workspace", str(temp_dir)])

    assert result.exit_code != 0
    assert "origin" in result.output


def test_changelog_display(runner, temp_dir):
    save_changelog(
        [
            CommitEntry(
                module_path="libs/lib",
                revision="abcdef0123" + "0" * 30,
                author_name="Ann",
                author_date="Mon, 1 Jan 2024",
                message="Fix it\nbody",
                modified_files=[ModifiedFile(path="x.py", action="M")],
            ),
            CommitEntry.structural("./foo", ADDED_NOTE),
        ],
        temp_dir / ".repo-scm" / "changelog.json",
    )

    result = runner.invoke(main, ["changelog", "--workspace", str(temp_dir), "--files"])

    assert result.exit_code == 0, result.output
    assert "abcdef01" in result.output
    assert "Fix it" in result.output
    assert "M x.py" in result.output
    assert ADDED_NOTE in result.output


def test_changelog_empty(runner, temp_dir):
    result = runner.invoke(main, ["changelog", "--workspace", str(temp_dir)])

    assert result.exit_code == 0
    assert "No changes recorded" in result.output


def test_changelog_corrupt_aborts(runner, temp_dir):
    path = temp_dir / "broken.json"
    path.write_text("{")

    result = runner.invoke(
        main, ["changelog", "--workspace", str(temp_dir), "--file", str(path)]
    )

    assert result.exit_code != 0


def test_history_empty(runner, temp_dir):
    result = runner.invoke(main, ["history", "--workspace", str(temp_dir)])

    assert result.exit_code == 0
    assert "No snapshots recorded" in result.output


def test_sync_and_history(runner, repos, temp_dir):
    root_url = repos.url("upstream/root.git")
    repos.init(
        "upstream/root.git",
        {
            "repo.xml": f'<manifest><project origin="{root_url}" />'
            '<module name="lib" origin="../lib.git" /></manifest>'
        },
    )
    repos.init("upstream/lib.git")
    workspace = temp_dir / "ws"

    result = runner.invoke(
        main, ["sync", "--workspace", str(workspace), "--url", root_url, "--branch", "master"]
    )
    assert result.exit_code == 0, result.output
    assert "First build" in result.output
    assert (workspace / "lib" / "README.md").exists()

    result = runner.invoke(main, ["history", "--workspace", str(workspace)])
    assert result.exit_code == 0, result.output
    assert "Snapshots" in result.output


def test_sync_without_url_aborts(runner, temp_dir, monkeypatch):
    monkeypatch.delenv("REPO_SCM_URL", raising=False)

    result = runner.invoke(main, ["sync", "--workspace", str(temp_dir / "ws")])

    assert result.exit_code != 0
    assert "repository URL" in result.output


@pytest.fixture
def logging_calls(monkeypatch):
    calls = []
    monkeypatch.setattr("repo_scm.cli.main.setup_logging", lambda level: calls.append(level))
    return calls


@pytest.mark.parametrize("command", ["resolve", "changelog", "history"])
def test_configured_log_level_applies(runner, workspace, logging_calls, command):
    (workspace / ".repo-scm.json").write_text(json.dumps({"log_level": "debug"}))

    result = runner.invoke(main, [command, "--workspace", str(workspace)])

    assert result.exit_code == 0, result.output
    assert logging_calls[-1] == "debug"


def test_log_level_option_wins_over_config(runner, workspace, logging_calls):
    (workspace / ".repo-scm.json").write_text(json.dumps({"log_level": "debug"}))

    result = runner.invoke(
        main, ["--log-level", "error", "history", "--workspace", str(workspace)]
    )

    assert result.exit_code == 0, result.output
    assert logging_calls == ["error"]
