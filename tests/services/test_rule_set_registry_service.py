"""
Tests for RuleSetRegistry publication.

Covers:
- Version bump and checksum on every edit
- Single-rule add, update, remove and move
- Optimistic concurrency via expected_version
- Readers keep the snapshot they took across a publish
- Concurrent publishers never lose an update
"""

import threading

import pytest

from coa_kernel.domain.combination_rules import (
    CodeCriterion,
    CombinationRule,
    EntryBehavior,
    MappingEntry,
    RuleStatus,
)
from coa_kernel.domain.snapshots import RuleSetSnapshot
from coa_kernel.exceptions import DuplicateRuleError, RuleNotFoundError, StaleRuleSetError
from coa_services import RuleSetRegistry


def make_rule(rule_id, code_a="101", status=RuleStatus.ACTIVE):
    entry = MappingEntry(f"{rule_id}-e1", EntryBehavior.INCLUDE, CodeCriterion(code_a), CodeCriterion("6100"))
    return CombinationRule(rule_id, rule_id, status, "fund", "object", (entry,))


class TestPublish:

    def test_initial_from_rules(self):
        registry = RuleSetRegistry([make_rule("r1")])
        assert registry.version == 1
        assert registry.get_rule("r1") is not None

    def test_initial_from_snapshot(self):
        snapshot = RuleSetSnapshot([make_rule("r1")], version=5)
        assert RuleSetRegistry(snapshot).snapshot is snapshot

    def test_publish_bumps_version(self, captured_logs):
        registry = RuleSetRegistry([make_rule("r1")])
        published = registry.publish([make_rule("r2"), make_rule("r1")])
        assert published.version == 2
        assert [r.rule_id for r in registry.snapshot] == ["r2", "r1"]

        logs = [r for r in captured_logs() if r["message"] == "rule_set_published"]
        assert logs[-1]["rule_set_version"] == 2
        assert logs[-1]["previous_version"] == 1
        assert logs[-1]["checksum"] == published.checksum

    def test_reader_snapshot_unchanged_by_publish(self):
        registry = RuleSetRegistry([make_rule("r1")])
        held = registry.snapshot
        registry.remove_rule("r1")
        assert [r.rule_id for r in held] == ["r1"]
        assert len(registry.snapshot) == 0


class TestSingleRuleEdits:

    def test_add_appends(self):
        registry = RuleSetRegistry([make_rule("r1")])
        registry.add_rule(make_rule("r2"))
        assert [r.rule_id for r in registry.snapshot] == ["r1", "r2"]

    def test_update_keeps_position(self):
        registry = RuleSetRegistry([make_rule("r1"), make_rule("r2")])
        registry.update_rule(make_rule("r1", status=RuleStatus.INACTIVE))
        assert [r.rule_id for r in registry.snapshot] == ["r1", "r2"]
        assert not registry.get_rule("r1").is_active

    def test_move(self):
        registry = RuleSetRegistry([make_rule("r1"), make_rule("r2"), make_rule("r3")])
        registry.move_rule("r3", 0)
        assert [r.rule_id for r in registry.snapshot] == ["r3", "r1", "r2"]
        assert registry.version == 2

    def test_duplicate_add_leaves_registry_unchanged(self):
        registry = RuleSetRegistry([make_rule("r1")])
        with pytest.raises(DuplicateRuleError):
            registry.add_rule(make_rule("r1"))
        assert registry.version == 1

    def test_remove_missing(self):
        with pytest.raises(RuleNotFoundError):
            RuleSetRegistry().remove_rule("r9")


class TestOptimisticConcurrency:

    def test_matching_expected_version_accepted(self):
        registry = RuleSetRegistry([make_rule("r1")])
        assert registry.add_rule(make_rule("r2"), expected_version=1).version == 2

    def test_stale_version_rejected(self, captured_logs):
        registry = RuleSetRegistry([make_rule("r1")])
        registry.add_rule(make_rule("r2"))
        with pytest.raises(StaleRuleSetError):
            registry.remove_rule("r1", expected_version=1)
        assert registry.get_rule("r1") is not None
        assert any(r["message"] == "rule_set_publish_rejected" for r in captured_logs())

    def test_lost_update_prevented(self):
        registry = RuleSetRegistry([make_rule("r1")])
        seen = registry.version
        registry.update_rule(make_rule("r1", code_a="102"), expected_version=seen)
        with pytest.raises(StaleRuleSetError):
            registry.update_rule(make_rule("r1", code_a="103"), expected_version=seen)
        assert registry.get_rule("r1").mapping_entries[0].segment_a_criterion == CodeCriterion("102")

    def test_concurrent_adds_all_land(self):
        registry = RuleSetRegistry()
        barrier = threading.Barrier(8)

        def worker(index: int) -> None:
            barrier.wait()
            for n in range(10):
                registry.add_rule(make_rule(f"r{index}-{n}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry.snapshot) == 80
        assert registry.version == 81
