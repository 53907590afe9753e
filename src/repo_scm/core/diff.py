"""Snapshot comparison: which modules changed between two builds."""

from typing import Iterable, List, Optional

from repo_scm.core.logging import get_logger
from repo_scm.models.module import ModuleCache, ModuleRecord
from repo_scm.models.snapshot import Snapshot

log = get_logger("diff")


def what_changed(
    current: Snapshot,
    previous: Optional[Snapshot],
    cache: Optional[ModuleCache] = None,
) -> Optional[List[ModuleRecord]]:
    """List the modules of ``current`` that changed since ``previous``.

    Returns None when there is no previous state: listing every module of a
    first build would make the change log include every commit ever made.

    For each path of ``current`` (in manifest order):

    * not in ``previous``: a placeholder record without revision, meaning the
      module was added to the manifest;
    * in ``previous`` with a different record: the *previous* record, which is
      the baseline to log from;
    * unchanged: nothing.

    Paths that only exist in ``previous`` are not listed here.
    """
    if previous is None or previous.is_none:
        log.info("no previous state, treating as first build")
        return None

    cache = cache if cache is not None else ModuleCache()
    changes: List[ModuleRecord] = []

    for path, record in current.modules.items():
        old = previous.modules.get(path)
        if old is None:
            log.info("module added", path=path)
            changes.append(cache.intern(record.path, record.origin, record.branch))
        elif old != record:
            log.info(
                "module changed",
                path=path,
                old_revision=old.revision,
                new_revision=record.revision,
            )
            changes.append(old)

    return changes


def find_last_snapshot(
    history: Iterable[Snapshot], branch: Optional[str]
) -> Optional[Snapshot]:
    """First snapshot of a newest-first ``history`` that was taken on ``branch``."""
    for snapshot in history:
        if snapshot.branch == branch:
            return snapshot
    return None
