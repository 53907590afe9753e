"""Module record model and the identity cache that interns it."""

import threading
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

ModuleKey = Tuple[str, str, str, Optional[str]]


class ModuleRecord(BaseModel):
    """The state of one module: where it lives, where it comes from, and at which revision.

    Records are immutable. Build them through a ``ModuleCache`` so that equal
    records share one instance.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    origin: str
    branch: str
    revision: Optional[str] = None  # None until the working copy has been inspected

    @property
    def key(self) -> ModuleKey:
        """Composite identity key of the four fields."""
        return (self.path, self.origin, self.branch, self.revision)


class ModuleCache:
    """Interns ModuleRecords by value.

    Constructing a record whose four fields were already seen returns the
    previously cached instance. Lookup-or-insert is serialized with a lock.
    """

    def __init__(self):
        self._records: Dict[ModuleKey, ModuleRecord] = {}
        self._lock = threading.Lock()

    def intern(
        self, path: str, origin: str, branch: str, revision: Optional[str] = None
    ) -> ModuleRecord:
        """Return the cached record for these fields, creating it on first use."""
        key = (path, origin, branch, revision)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = ModuleRecord(
                    path=path, origin=origin, branch=branch, revision=revision
                )
                self._records[key] = record
            return record

    def resolve(self, record: ModuleRecord) -> ModuleRecord:
        """Route an already-built record (e.g. freshly decoded) into the cache."""
        with self._lock:
            cached = self._records.get(record.key)
            if cached is None:
                self._records[record.key] = record
                cached = record
            return cached

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record: object) -> bool:
        if not isinstance(record, ModuleRecord):
            return False
        return record.key in self._records
