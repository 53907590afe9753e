"""Checkout of a multi-repository workspace and change-log generation for it."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from repo_scm.core.changelog import generate_changelog
from repo_scm.core.codec import SnapshotStore, save_changelog
from repo_scm.core.git_helper import GitHelper
from repo_scm.core.logging import get_logger
from repo_scm.core.manifest import ManifestResolver
from repo_scm.exceptions import ConfigError, VcsCommandError
from repo_scm.models.commit_entry import CommitEntry
from repo_scm.models.config import RepoScmConfig
from repo_scm.models.module import ModuleCache
from repo_scm.models.snapshot import Snapshot

log = get_logger("checkout")


class CheckoutResult(BaseModel):
    """Outcome of one checkout: the new state, its baseline and the change log."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    snapshot: Snapshot
    previous: Optional[Snapshot] = None
    entries: List[CommitEntry] = []
    changelog_path: Optional[Path] = None

    @property
    def is_first_build(self) -> bool:
        return self.previous is None


class RepoCheckout:
    """Brings a workspace up to date with its manifest and records what changed.

    The project repository is cloned into ``workspace`` (or switched to the
    configured branch and pulled), the manifest is resolved, every module is
    cloned or pulled the same way, and the manifest is resolved again with
    revisions. That snapshot is compared with the last one stored for the same
    branch to build the change log.
    """

    def __init__(
        self,
        workspace: Path,
        config: RepoScmConfig,
        git_helper: Optional[GitHelper] = None,
        cache: Optional[ModuleCache] = None,
    ):
        self.workspace = Path(workspace)
        self.config = config
        self.git_helper = git_helper or GitHelper()
        self.cache = cache if cache is not None else ModuleCache()
        self.resolver = ManifestResolver(self.git_helper, self.cache)
        self.store = SnapshotStore(
            self.workspace / config.snapshot_file, self.cache, config.history_limit
        )

    @property
    def changelog_path(self) -> Path:
        return self.workspace / self.config.changelog_file

    def _sync(self, directory: Path, origin: str, branch: str) -> None:
        """Clone when ``directory`` is not a working copy yet, otherwise switch branch and pull."""
        if not self.git_helper.is_repository(directory):
            self.git_helper.clone(directory, origin, branch)
        else:
            self.git_helper.checkout_branch_if_changed(directory, branch)
            self.git_helper.pull(directory, branch)

    def sync_project(self) -> None:
        if not self.config.repository_url:
            raise ConfigError("No repository URL configured for the project")
        self.workspace.mkdir(parents=True, exist_ok=True)
        self._sync(self.workspace, self.config.repository_url, self.config.branch)

    def sync_modules(self, snapshot: Snapshot) -> None:
        for record in snapshot.records():
            log.info("sync module", path=record.path, branch=record.branch)
            self._sync(self.workspace / record.path, record.origin, record.branch)

    def resolve(self, include_revisions: bool) -> Snapshot:
        return self.resolver.resolve_file(
            self.workspace, self.config.manifest_name, include_revisions
        )

    def run(self) -> CheckoutResult:
        """Check out everything, then build and save the change log."""
        self.sync_project()
        self.sync_modules(self.resolve(include_revisions=False))

        snapshot = self.resolve(include_revisions=True)
        snapshot.include_project()

        previous = self.store.last_for_branch(snapshot.branch)
        result = CheckoutResult(snapshot=snapshot, previous=previous)

        try:
            entries = generate_changelog(
                snapshot,
                previous,
                self.workspace,
                self.git_helper,
                self.cache,
                include_merge_commits=self.config.include_merge_commits,
                workers=self.config.workers,
            )
        except VcsCommandError as e:
            if e.partial_entries:
                save_changelog(e.partial_entries, self.changelog_path)
            raise

        if entries:
            save_changelog(entries, self.changelog_path)
            result.entries = entries
            result.changelog_path = self.changelog_path
        elif self.changelog_path.exists():
            self.changelog_path.unlink()

        self.store.append(snapshot)
        return result
