"""Tests for ModuleRecord, ModuleCache, Snapshot and change-log models."""

import threading

import pytest
from pydantic import ValidationError

from repo_scm.models import (
    ADDED_NOTE,
    PROJECT_PATH,
    ChangeLogSet,
    CommitEntry,
    ModifiedFile,
    ModuleCache,
    ModuleRecord,
    Snapshot,
)

ORIGIN = "https://git.example.com/group/lib.git"


@pytest.fixture
def cache():
    return ModuleCache()


class TestModuleCache:
    def test_equal_fields_share_one_instance(self, cache):
        first = cache.intern("libs/lib", ORIGIN, "main", "a" * 40)
        second = cache.intern("libs/lib", ORIGIN, "main", "a" * 40)

        assert first is second
        assert len(cache) == 1

    def test_absent_revisions_compare_equal(self, cache):
        first = cache.intern("libs/lib", ORIGIN, "main")
        second = cache.intern("libs/lib", ORIGIN, "main", None)

        assert first is second
        assert first.revision is None

    def test_different_revision_is_a_different_record(self, cache):
        first = cache.intern("libs/lib", ORIGIN, "main", "a" * 40)
        second = cache.intern("libs/lib", ORIGIN, "main", "b" * 40)

        assert first is not second
        assert first != second

    def test_resolve_routes_decoded_records_to_cached_instance(self, cache):
        cached = cache.intern("libs/lib", ORIGIN, "main", "a" * 40)
        decoded = ModuleRecord.model_validate(cached.model_dump())

        assert decoded is not cached
        assert cache.resolve(decoded) is cached

    def test_resolve_inserts_unknown_records(self, cache):
        record = ModuleRecord(path="x", origin=ORIGIN, branch="main")

        assert cache.resolve(record) is record
        assert record in cache
        assert cache.intern("x", ORIGIN, "main") is record

    def test_separate_caches_do_not_share_instances(self):
        first = ModuleCache().intern("x", ORIGIN, "main")
        second = ModuleCache().intern("x", ORIGIN, "main")

        assert first == second
        assert first is not second

    def test_clear(self, cache):
        cache.intern("x", ORIGIN, "main")
        cache.clear()
        assert len(cache) == 0

    def test_concurrent_interning_converges(self, cache):
        results = []

        def worker():
            for _ in range(200):
                results.append(cache.intern("x", ORIGIN, "main", "c" * 40))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(record) for record in results}) == 1


class TestModuleRecord:
    def test_records_are_immutable(self, cache):
        record = cache.intern("x", ORIGIN, "main")
        with pytest.raises(ValidationError):
            record.branch = "other"

    def test_records_are_hashable(self, cache):
        record = cache.intern("x", ORIGIN, "main")
        assert {record: 1}[ModuleRecord(path="x", origin=ORIGIN, branch="main")] == 1


class TestSnapshot:
    def _snapshot(self, cache, branch="main", revision="a" * 40):
        snapshot = Snapshot(branch=branch)
        snapshot.project = cache.intern(PROJECT_PATH, ORIGIN, branch, "f" * 40)
        snapshot.add_module(cache.intern("libs/a", ORIGIN, branch, revision))
        snapshot.add_module(cache.intern("libs/b", ORIGIN, branch, revision))
        return snapshot

    def test_equality_ignores_project(self, cache):
        first = self._snapshot(cache)
        second = self._snapshot(cache)
        second.project = cache.intern(PROJECT_PATH, ORIGIN, "main", "e" * 40)

        assert first == second
        assert hash(first) == hash(second)

    def test_branch_matters(self, cache):
        assert self._snapshot(cache, branch="main") != self._snapshot(cache, branch="dev")

    def test_modules_keep_insertion_order(self, cache):
        snapshot = Snapshot(branch="main")
        for name in ["zeta", "alpha", "mid"]:
            snapshot.add_module(cache.intern(name, ORIGIN, "main"))

        assert list(snapshot.modules) == ["zeta", "alpha", "mid"]

    def test_none_snapshot(self):
        assert Snapshot.none().is_none
        assert Snapshot.none() == Snapshot()

    def test_revision_of(self, cache):
        snapshot = self._snapshot(cache)
        assert snapshot.revision_of("libs/a") == "a" * 40
        assert snapshot.revision_of("missing") is None

    def test_include_project(self, cache):
        snapshot = self._snapshot(cache)
        snapshot.include_project()

        assert snapshot.modules[PROJECT_PATH] is snapshot.project
        assert snapshot.revision_of(PROJECT_PATH) == "f" * 40


class TestCommitEntry:
    def test_structural_entry(self):
        entry = CommitEntry.structural("libs/a", ADDED_NOTE)

        assert entry.is_structural
        assert entry.summary == ADDED_NOTE
        assert entry.affected_paths == []

    def test_summary_is_first_message_line(self):
        entry = CommitEntry(
            module_path="libs/a",
            revision="a" * 40,
            message="Fix the parser\n\nLonger description",
            modified_files=[ModifiedFile(path="src/parser.py", action="M")],
        )

        assert not entry.is_structural
        assert entry.summary == "Fix the parser"
        assert entry.affected_paths == ["src/parser.py"]

    @pytest.mark.parametrize(
        "action,edit_type", [("A", "add"), ("D", "delete"), ("M", "edit"), ("R", "edit")]
    )
    def test_edit_type(self, action, edit_type):
        assert ModifiedFile(path="f", action=action).edit_type == edit_type

    def test_change_log_set_groups_by_module_in_order(self):
        change_set = ChangeLogSet(
            entries=[
                CommitEntry(module_path="b", revision="1" * 40),
                CommitEntry(module_path="a", revision="2" * 40),
                CommitEntry(module_path="b", revision="3" * 40),
            ]
        )

        grouped = change_set.by_module()
        assert list(grouped) == ["b", "a"]
        assert [e.revision for e in grouped["b"]] == ["1" * 40, "3" * 40]
        assert not change_set.is_empty
        assert ChangeLogSet().is_empty

    def test_change_log_set_holds_only_entries(self):
        entry = CommitEntry.structural("./foo", ADDED_NOTE)

        assert ChangeLogSet(entries=[entry]).model_dump() == {"entries": [entry.model_dump()]}
