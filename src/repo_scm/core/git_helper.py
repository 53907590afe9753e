"""Thin facade over GitPython for the git operations repo-scm needs."""

import os
from pathlib import Path
from typing import List, Optional, Union

import git
from git import Repo

from repo_scm.core.logging import get_logger
from repo_scm.exceptions import VcsCommandError

PathLike = Union[str, Path]

log = get_logger("git")


def _as_error(e: git.exc.CommandError) -> VcsCommandError:
    status = e.status if isinstance(e.status, int) else None
    return VcsCommandError(e.command, status, str(e.stderr or ""))


class GitHelper:
    """Runs git commands inside module working directories.

    Every failing command raises ``VcsCommandError`` carrying the command line.
    """

    def __init__(self, git_executable: str = "git"):
        self.git_executable = git_executable

    def run(self, path: PathLike, *args: str) -> str:
        """Run ``git <args>`` in ``path`` and return its stdout."""
        command = [self.git_executable, *args]
        try:
            return git.Git(str(path)).execute(command)
        except git.exc.CommandError as e:
            raise _as_error(e) from e

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def is_repository(self, path: PathLike) -> bool:
        """Check if ``path`` is the top of a git working copy."""
        return (Path(path) / ".git").exists()

    def current_revision(self, path: PathLike) -> str:
        """Full SHA-1 of HEAD."""
        return self.run(path, "rev-parse", "HEAD").strip()

    def current_branch(self, path: PathLike) -> Optional[str]:
        """Name of the checked-out branch, or None on a detached HEAD."""
        try:
            return self.run(path, "symbolic-ref", "--short", "-q", "HEAD").strip()
        except VcsCommandError as e:
            if e.status == 1:
                return None
            raise

    def clone(
        self, destination: PathLike, origin: str, branch: Optional[str] = None
    ) -> None:
        """Clone ``origin`` into ``destination``, creating parent directories.

        Environment variables in the origin and branch are expanded.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        origin = os.path.expandvars(origin)
        kwargs = {}
        if branch:
            kwargs["branch"] = os.path.expandvars(branch)

        log.info("clone", origin=origin, destination=str(destination), **kwargs)
        try:
            Repo.clone_from(origin, str(destination), **kwargs)
        except git.exc.CommandError as e:
            raise _as_error(e) from e

    def fetch(self, path: PathLike) -> None:
        self.run(path, "fetch")

    def pull(self, path: PathLike, branch: str) -> None:
        log.info("pull", path=str(path), branch=branch)
        self.run(path, "pull", "origin", branch)

    def has_local_branch(self, path: PathLike, name: str) -> bool:
        repo = Repo(str(path))
        return name in [h.name for h in repo.heads]

    def has_remote_branch(self, path: PathLike, name: str) -> bool:
        """Fetch, then check whether ``origin/<name>`` exists."""
        self.fetch(path)
        repo = Repo(str(path))
        if "origin" not in [r.name for r in repo.remotes]:
            return False
        return f"origin/{name}" in [ref.name for ref in repo.remote("origin").refs]

    def checkout(
        self,
        path: PathLike,
        branch: str,
        create: bool = False,
        start_point: Optional[str] = None,
    ) -> None:
        """Check out ``branch``; with ``create`` the branch is created, optionally from ``start_point``."""
        args: List[str] = ["checkout"]
        if create:
            args.append("-b")
        args.append(branch)
        if start_point:
            args.append(start_point)
        self.run(path, *args)

    def checkout_branch_if_changed(self, path: PathLike, branch: str) -> None:
        """Switch the working copy to ``branch`` unless it is already there.

        Prefers an existing local branch, then a remote-tracking one, and
        otherwise creates a new branch from the current HEAD.
        """
        if self.current_branch(path) == branch:
            return

        if self.has_local_branch(path, branch):
            self.checkout(path, branch)
        elif self.has_remote_branch(path, branch):
            self.checkout(path, branch, create=True, start_point=f"origin/{branch}")
        else:
            self.checkout(path, branch, create=True)

    def history_raw(
        self,
        path: PathLike,
        revision_range: str,
        first_parent_only: bool,
        fmt: str,
    ) -> str:
        """``git log --raw`` output for ``revision_range`` using the pretty format ``fmt``."""
        args = ["log", "--raw", "--no-abbrev", "--no-color"]
        if first_parent_only:
            args.append("--first-parent")
        args.append(f"--format={fmt}")
        args.append(revision_range)
        return self.run(path, *args)
