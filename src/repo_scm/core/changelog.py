"""Change-log extraction: mine each changed module's git history into CommitEntries."""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence

from repo_scm.core.diff import what_changed
from repo_scm.core.git_helper import GitHelper
from repo_scm.core.logging import get_logger
from repo_scm.exceptions import VcsCommandError
from repo_scm.models.commit_entry import (
    ADDED_NOTE,
    REMOVED_NOTE,
    CommitEntry,
    ModifiedFile,
)
from repo_scm.models.module import ModuleCache, ModuleRecord
from repo_scm.models.snapshot import Snapshot

# Opaque markers that will not show up in commit content.
RECORD_MARK = "[[<q7Rv2xK9_REPO_SCM_RECORD>]]"
FIELD_MARK = "[[<q7Rv2xK9_REPO_SCM_FIELD>]"

# hash, author name/email/date, committer name/email/date, subject + body
LOG_FIELDS = ("%H", "%an", "%ae", "%aD", "%cn", "%ce", "%cD", "%s%n%b")
LOG_FORMAT = RECORD_MARK + "".join(field + FIELD_MARK for field in LOG_FIELDS)

# the eight formatted fields plus the raw file-status block
MIN_FIELD_COUNT = len(LOG_FIELDS) + 1

RAW_MARKER = ":"

log = get_logger("changelog")


def parse_modified_files(block: str) -> List[ModifiedFile]:
    """Parse the ``--raw`` lines of one commit.

    A raw line looks like ``:100644 100644 <sha> <sha> M<TAB>path``; renames and
    copies carry a score and two tab-separated paths, the last one being the
    new path. Lines not starting with ``:`` are ignored.
    """
    files: List[ModifiedFile] = []
    for line in block.splitlines():
        if not line.startswith(RAW_MARKER):
            continue
        meta, sep, paths = line.partition("\t")
        fields = meta.split()
        if not sep or not fields:
            continue
        files.append(ModifiedFile(path=paths.split("\t")[-1], action=fields[-1][0]))
    return files


def parse_history(module_path: str, output: str) -> List[CommitEntry]:
    """Parse ``git log`` output produced with ``LOG_FORMAT``.

    Records with fewer than ``MIN_FIELD_COUNT`` fields are dropped; the raw
    format is not a contract this parser controls.
    """
    entries: List[CommitEntry] = []
    for record in output.split(RECORD_MARK):
        parts = record.split(FIELD_MARK)
        if len(parts) < MIN_FIELD_COUNT or not parts[0].strip():
            if record.strip():
                log.warning(
                    "dropping malformed history record",
                    module=module_path,
                    fields=len(parts),
                )
            continue

        (
            revision,
            author_name,
            author_email,
            author_date,
            committer_name,
            committer_email,
            committer_date,
        ) = (part.strip() for part in parts[:7])
        message = FIELD_MARK.join(parts[7:-1]).strip()

        entries.append(
            CommitEntry(
                module_path=module_path,
                revision=revision,
                author_name=author_name,
                author_email=author_email,
                author_date=author_date,
                committer_name=committer_name,
                committer_email=committer_email,
                committer_date=committer_date,
                message=message,
                modified_files=parse_modified_files(parts[-1]),
            )
        )
    return entries


class ChangeLogExtractor:
    """Turns changed modules into change-log entries using git history.

    With ``include_merge_commits`` off, only first-parent history is read.
    With ``workers > 1`` modules are queried in parallel; the output keeps
    the order of ``changes``.
    """

    def __init__(
        self,
        git_helper: Optional[GitHelper] = None,
        include_merge_commits: bool = True,
        workers: int = 1,
    ):
        self.git_helper = git_helper or GitHelper()
        self.include_merge_commits = include_merge_commits
        self.workers = max(1, workers)

    def extract(
        self,
        changes: Sequence[ModuleRecord],
        current: Snapshot,
        working_directory: Path,
    ) -> List[CommitEntry]:
        """Extract entries for every changed module.

        A failing history query aborts the pass; the ``VcsCommandError`` then
        carries the entries of the modules before it in ``partial_entries``.
        """
        entries: List[CommitEntry] = []
        try:
            if self.workers > 1 and len(changes) > 1:
                with ThreadPoolExecutor(max_workers=self.workers) as pool:
                    futures = [
                        pool.submit(self.extract_module, change, current, working_directory)
                        for change in changes
                    ]
                    for future in futures:
                        entries.extend(future.result())
            else:
                for change in changes:
                    entries.extend(
                        self.extract_module(change, current, working_directory)
                    )
        except VcsCommandError as e:
            e.partial_entries = list(entries)
            raise
        return entries

    def extract_module(
        self, change: ModuleRecord, current: Snapshot, working_directory: Path
    ) -> List[CommitEntry]:
        """Entries for one module, from its baseline revision to its current one."""
        if change.revision is None:
            return [CommitEntry.structural(change.path, ADDED_NOTE)]

        new_revision = current.revision_of(change.path)
        if new_revision is None:
            return [CommitEntry.structural(change.path, REMOVED_NOTE)]

        revision_range = f"{change.revision}..{new_revision}"
        log.info("history query", module=change.path, range=revision_range)
        output = self.git_helper.history_raw(
            Path(working_directory) / change.path,
            revision_range,
            first_parent_only=not self.include_merge_commits,
            fmt=LOG_FORMAT,
        )
        return parse_history(change.path, output)


def extract_changelog(
    changes: Sequence[ModuleRecord],
    current: Snapshot,
    working_directory: Path,
    git_helper: Optional[GitHelper] = None,
    include_merge_commits: bool = True,
) -> List[CommitEntry]:
    return ChangeLogExtractor(git_helper, include_merge_commits).extract(
        changes, current, working_directory
    )


def generate_changelog(
    current: Snapshot,
    previous: Optional[Snapshot],
    working_directory: Path,
    git_helper: Optional[GitHelper] = None,
    cache: Optional[ModuleCache] = None,
    include_merge_commits: bool = True,
    workers: int = 1,
) -> Optional[List[CommitEntry]]:
    """Diff two snapshots and extract the change log.

    Returns None on a first build or when nothing changed.
    """
    changes = what_changed(current, previous, cache)
    if not changes:
        log.info("no changes or first build")
        return None
    extractor = ChangeLogExtractor(git_helper, include_merge_commits, workers)
    return extractor.extract(changes, current, working_directory)
