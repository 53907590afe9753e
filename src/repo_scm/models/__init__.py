"""Data models for repo-scm."""

from .commit_entry import (
    ADDED_NOTE,
    REMOVED_NOTE,
    ChangeLogSet,
    CommitEntry,
    ModifiedFile,
)
from .config import RepoScmConfig
from .module import ModuleCache, ModuleRecord
from .snapshot import PROJECT_PATH, Snapshot

__all__ = [
    "ADDED_NOTE",
    "REMOVED_NOTE",
    "ChangeLogSet",
    "CommitEntry",
    "ModifiedFile",
    "ModuleCache",
    "ModuleRecord",
    "PROJECT_PATH",
    "RepoScmConfig",
    "Snapshot",
]
