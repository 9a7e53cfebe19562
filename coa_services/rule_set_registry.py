"""
RuleSetRegistry -- the single published combination rule set.

Responsibility:
    Hold the current ``RuleSetSnapshot`` and replace it atomically when an
    administrator publishes an edit.

Architecture position:
    Services -- imperative shell around the immutable kernel snapshot.
    Read by ``CombinationService``; written by authoring flows.

Invariants enforced:
    - Copy-on-write: a snapshot is never mutated.  Readers holding a
      snapshot keep evaluating against it while a publish swaps in the next.
    - Every publish bumps the version by exactly one.
    - Optimistic concurrency: a publish carrying an ``expected_version``
      that is no longer current is rejected with ``StaleRuleSetError``.

Failure modes:
    - StaleRuleSetError on a lost update.
    - DuplicateRuleError / RuleNotFoundError from the single-rule edits.

Audit relevance:
    Each publish is logged with the new version, checksum and rule count.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from coa_kernel.domain.combination_rules import CombinationRule
from coa_kernel.domain.snapshots import RuleSetSnapshot
from coa_kernel.exceptions import StaleRuleSetError
from coa_kernel.logging_config import get_logger

logger = get_logger("services.rule_set_registry")


class RuleSetRegistry:
    """Thread-safe holder of the current rule set snapshot."""

    def __init__(self, initial: RuleSetSnapshot | Iterable[CombinationRule] = ()):
        if not isinstance(initial, RuleSetSnapshot):
            initial = RuleSetSnapshot(initial)
        self._snapshot = initial
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> RuleSetSnapshot:
        """The current snapshot.  Take it once per unit of work."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def get_rule(self, rule_id: str) -> CombinationRule | None:
        return self._snapshot.get_rule(rule_id)

    def publish(
        self,
        rules: Iterable[CombinationRule],
        expected_version: int | None = None,
    ) -> RuleSetSnapshot:
        """Replace the whole ordered rule list."""
        rules = tuple(rules)
        return self._apply(
            lambda current: RuleSetSnapshot(rules, version=current.version + 1),
            expected_version,
            action="publish",
        )

    def add_rule(
        self, rule: CombinationRule, expected_version: int | None = None
    ) -> RuleSetSnapshot:
        """Append ``rule`` to the end of the rule order."""
        return self._apply(
            lambda current: current.with_rule_added(rule),
            expected_version,
            action="add",
            rule_id=rule.rule_id,
        )

    def update_rule(
        self, rule: CombinationRule, expected_version: int | None = None
    ) -> RuleSetSnapshot:
        """Replace the rule with the same id, keeping its position."""
        return self._apply(
            lambda current: current.with_rule_replaced(rule),
            expected_version,
            action="update",
            rule_id=rule.rule_id,
        )

    def remove_rule(
        self, rule_id: str, expected_version: int | None = None
    ) -> RuleSetSnapshot:
        return self._apply(
            lambda current: current.with_rule_removed(rule_id),
            expected_version,
            action="remove",
            rule_id=rule_id,
        )

    def move_rule(
        self, rule_id: str, new_index: int, expected_version: int | None = None
    ) -> RuleSetSnapshot:
        """Reorder; ``new_index`` is clamped to the list bounds."""
        return self._apply(
            lambda current: current.with_rule_moved(rule_id, new_index),
            expected_version,
            action="move",
            rule_id=rule_id,
        )

    def _apply(
        self,
        change: Callable[[RuleSetSnapshot], RuleSetSnapshot],
        expected_version: int | None,
        *,
        action: str,
        rule_id: str | None = None,
    ) -> RuleSetSnapshot:
        with self._lock:
            current = self._snapshot
            if expected_version is not None and expected_version != current.version:
                logger.warning(
                    "rule_set_publish_rejected",
                    extra={
                        "action": action,
                        "rule_id": rule_id,
                        "expected_version": expected_version,
                        "current_version": current.version,
                    },
                )
                raise StaleRuleSetError(expected_version, current.version)
            published = change(current)
            self._snapshot = published

        logger.info(
            "rule_set_published",
            extra={
                "action": action,
                "rule_id": rule_id,
                "rule_set_version": published.version,
                "previous_version": current.version,
                "rule_count": len(published),
                "checksum": published.checksum,
            },
        )
        return published

    def __repr__(self) -> str:
        return f"<RuleSetRegistry v{self._snapshot.version} rules={len(self._snapshot)}>"
