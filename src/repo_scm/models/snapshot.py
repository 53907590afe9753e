"""Snapshot model: the resolved state of a project and all of its modules."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .module import ModuleRecord

PROJECT_PATH = "./"


class Snapshot(BaseModel):
    """A point-in-time state of the root project and every module.

    ``modules`` keeps manifest document order. Two snapshots are equal when
    their branches and module mappings are equal; the project record is not
    compared. A snapshot with no project and no modules means that no revision
    information is available (see ``Snapshot.none``).
    """

    branch: Optional[str] = None
    project: Optional[ModuleRecord] = None
    modules: Dict[str, ModuleRecord] = Field(default_factory=dict)

    @classmethod
    def none(cls) -> "Snapshot":
        """Baseline used when a build has no previous state."""
        return cls()

    @property
    def is_none(self) -> bool:
        return self.project is None and not self.modules

    def add_module(self, record: ModuleRecord) -> None:
        """Register a module under its path, keeping insertion order."""
        self.modules[record.path] = record

    def include_project(self) -> None:
        """Track the root project as a module under ``./`` so it shows up in diffs."""
        if self.project is not None:
            self.modules[PROJECT_PATH] = self.project

    def records(self) -> List[ModuleRecord]:
        return list(self.modules.values())

    def revision_of(self, path: str) -> Optional[str]:
        """Revision of the module at ``path``, or None if unknown or absent."""
        record = self.modules.get(path)
        return record.revision if record is not None else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self.branch == other.branch and self.modules == other.modules

    def __hash__(self) -> int:
        return hash(self.branch) ^ hash(frozenset(self.modules.items()))
