"""Change-log entry models."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

ADDED_NOTE = "This module was added to the manifest."
REMOVED_NOTE = "This module was removed from the manifest."


class ModifiedFile(BaseModel):
    """A file touched by a commit, with its single-character git status."""

    path: str
    action: str

    @property
    def edit_type(self) -> str:
        """Coarse edit type used for display: add, delete or edit."""
        if self.action in ("A", "C"):
            return "add"
        if self.action == "D":
            return "delete"
        return "edit"


class CommitEntry(BaseModel):
    """One commit of a module, or a structural event when ``revision`` is None."""

    module_path: str
    revision: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    author_date: Optional[str] = None
    committer_name: Optional[str] = None
    committer_email: Optional[str] = None
    committer_date: Optional[str] = None
    message: Optional[str] = None
    modified_files: Optional[List[ModifiedFile]] = None
    note: Optional[str] = None

    @classmethod
    def structural(cls, module_path: str, note: str) -> "CommitEntry":
        return cls(module_path=module_path, note=note)

    @property
    def is_structural(self) -> bool:
        return self.revision is None and self.note is not None

    @property
    def summary(self) -> str:
        """First line of the commit message, or the note for structural entries."""
        if self.message:
            return self.message.splitlines()[0]
        return self.note or ""

    @property
    def affected_paths(self) -> List[str]:
        return [f.path for f in self.modified_files or []]


class ChangeLogSet(BaseModel):
    """The change log of one build: every entry across all changed modules."""

    entries: List[CommitEntry] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def by_module(self) -> Dict[str, List[CommitEntry]]:
        """Group entries by module path, keeping manifest order."""
        grouped: Dict[str, List[CommitEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.module_path, []).append(entry)
        return grouped
