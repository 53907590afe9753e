"""Persistence of change logs and snapshot history as JSON documents."""

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from repo_scm.core.diff import find_last_snapshot
from repo_scm.core.logging import get_logger
from repo_scm.exceptions import CodecError
from repo_scm.models.commit_entry import CommitEntry
from repo_scm.models.module import ModuleCache, ModuleRecord
from repo_scm.models.snapshot import Snapshot

CHANGELOG_KIND = "repo-scm-changelog"
SNAPSHOTS_KIND = "repo-scm-snapshots"
FORMAT_VERSION = 1

log = get_logger("codec")


class _ChangeLogDocument(BaseModel):
    kind: str
    version: int
    entries: List[CommitEntry]


class _SnapshotDocument(BaseModel):
    """Snapshot as stored on disk: plain records, not yet routed through a cache."""

    branch: Optional[str] = None
    project: Optional[ModuleRecord] = None
    modules: List[ModuleRecord] = []


class _SnapshotHistoryDocument(BaseModel):
    kind: str
    version: int
    snapshots: List[_SnapshotDocument]


def _atomic_write(destination: Path, data: Dict[str, Any]) -> None:
    """Write JSON to a temp file next to ``destination``, then rename it into place."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=destination.parent,
        prefix=f".{destination.name}.",
        suffix=".tmp",
        delete=False,
    )
    tmp_path = Path(tmp_file.name)
    try:
        with tmp_file:
            json.dump(data, tmp_file, indent=2)
        tmp_path.replace(destination)
    except (TypeError, ValueError) as e:
        tmp_path.unlink(missing_ok=True)
        raise CodecError(f"Could not encode {destination}: {e}") from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _read_json(source: Path) -> Any:
    try:
        return json.loads(source.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CodecError(f"{source} is not valid JSON: {e}") from e


def _check_kind(source: Path, document: Any, kind: str) -> None:
    if not isinstance(document, dict) or document.get("kind") != kind:
        raise CodecError(f"{source} is not a {kind} document")
    if document.get("version") != FORMAT_VERSION:
        raise CodecError(
            f"{source} has unsupported version {document.get('version')!r}"
        )


def save_changelog(entries: Sequence[CommitEntry], destination: Path) -> None:
    """Atomically write ``entries`` to ``destination``."""
    destination = Path(destination)
    document = _ChangeLogDocument(
        kind=CHANGELOG_KIND, version=FORMAT_VERSION, entries=list(entries)
    )
    _atomic_write(destination, document.model_dump(mode="json"))
    log.info("saved change log", path=str(destination), entries=len(entries))


def load_changelog(source: Path) -> List[CommitEntry]:
    """Read a change log written by ``save_changelog``.

    A missing file means there were no changes and loads as an empty list.
    """
    source = Path(source)
    if not source.exists():
        return []

    document = _read_json(source)
    _check_kind(source, document, CHANGELOG_KIND)
    try:
        entries = _ChangeLogDocument.model_validate(document).entries
    except ValidationError as e:
        raise CodecError(f"{source} has invalid change-log entries: {e}") from e
    log.info("loaded change log", path=str(source), entries=len(entries))
    return entries


def _snapshot_to_document(snapshot: Snapshot) -> _SnapshotDocument:
    return _SnapshotDocument(
        branch=snapshot.branch,
        project=snapshot.project,
        modules=snapshot.records(),
    )


def _snapshot_from_document(
    document: _SnapshotDocument, cache: ModuleCache
) -> Snapshot:
    snapshot = Snapshot(branch=document.branch)
    if document.project is not None:
        snapshot.project = cache.resolve(document.project)
    for record in document.modules:
        snapshot.add_module(cache.resolve(record))
    return snapshot


def dump_snapshot(snapshot: Snapshot) -> Dict[str, Any]:
    return _snapshot_to_document(snapshot).model_dump(mode="json")


def load_snapshot(data: Dict[str, Any], cache: ModuleCache) -> Snapshot:
    """Decode a snapshot and route every record through ``cache``.

    Decoding happens first into plain records; interning is a separate pass,
    so decoded records resolve to the same instances as freshly built ones.
    """
    try:
        document = _SnapshotDocument.model_validate(data)
    except ValidationError as e:
        raise CodecError(f"Invalid snapshot: {e}") from e
    return _snapshot_from_document(document, cache)


class SnapshotStore:
    """Newest-first history of the snapshots taken in a workspace."""

    def __init__(self, path: Path, cache: ModuleCache, limit: int = 20):
        self.path = Path(path)
        self.cache = cache
        self.limit = limit

    def load(self) -> List[Snapshot]:
        if not self.path.exists():
            return []

        data = _read_json(self.path)
        _check_kind(self.path, data, SNAPSHOTS_KIND)
        try:
            document = _SnapshotHistoryDocument.model_validate(data)
        except ValidationError as e:
            raise CodecError(f"{self.path} has invalid snapshots: {e}") from e
        log.info("loaded snapshots", path=str(self.path), count=len(document.snapshots))
        return [_snapshot_from_document(s, self.cache) for s in document.snapshots]

    def append(self, snapshot: Snapshot) -> None:
        """Store ``snapshot`` as the newest entry, keeping at most ``limit`` snapshots."""
        history = [snapshot] + self.load()
        document = _SnapshotHistoryDocument(
            kind=SNAPSHOTS_KIND,
            version=FORMAT_VERSION,
            snapshots=[_snapshot_to_document(s) for s in history[: self.limit]],
        )
        _atomic_write(self.path, document.model_dump(mode="json"))
        log.info("saved snapshot", path=str(self.path), branch=snapshot.branch)

    def last_for_branch(self, branch: Optional[str]) -> Optional[Snapshot]:
        return find_last_snapshot(self.load(), branch)
