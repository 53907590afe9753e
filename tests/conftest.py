"""Shared fixtures: throwaway git repositories built with GitPython."""

import tempfile
from pathlib import Path

import pytest
from git import Actor, Repo

AUTHOR = Actor("Ann Author", "ann@example.com")
COMMITTER = Actor("Cal Committer", "cal@example.com")


class RepoFactory:
    """Creates repositories under a temporary directory."""

    def __init__(self, root: Path):
        self.root = root

    def init(self, relative: str, files=None, message: str = "Initial commit") -> Repo:
        """Create a repository on branch master with one commit."""
        path = self.root / relative
        path.mkdir(parents=True, exist_ok=True)
        repo = Repo.init(path)
        repo.git.symbolic_ref("HEAD", "refs/heads/master")

        with repo.config_writer() as config:
            config.set_value("user", "name", "Test User")
            config.set_value("user", "email", "test@example.com")

        self.commit(repo, files or {"README.md": f"# {relative}\n"}, message)
        return repo

    def commit(self, repo: Repo, files, message: str) -> str:
        """Write ``files`` (name -> content, None deletes) and commit them."""
        work_tree = Path(repo.working_tree_dir)
        added, removed = [], []
        for name, content in files.items():
            target = work_tree / name
            if content is None:
                removed.append(name)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            added.append(name)
        if added:
            repo.index.add(added)
        if removed:
            repo.index.remove(removed, working_tree=True)
        commit = repo.index.commit(message, author=AUTHOR, committer=COMMITTER)
        return commit.hexsha

    def url(self, relative: str) -> str:
        return f"file://{self.root / relative}"


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as directory:
        yield Path(directory).resolve()


@pytest.fixture
def repos(temp_dir):
    return RepoFactory(temp_dir)
