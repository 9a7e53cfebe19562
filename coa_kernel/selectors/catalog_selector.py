"""
Module: coa_kernel.selectors.catalog_selector
Responsibility: Read the stored chart of accounts into the immutable
    snapshots the combination engines evaluate against: segment catalog,
    hierarchy index, ordered rule set and global default behavior.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from engines or services.

Invariants enforced:
    - Rules are returned in stored ``position`` order and entries in their
      stored ``position`` order; order is semantically load-bearing.
    - A stored criterion that cannot be converted drops only its entry; the
      defect is recorded as a MALFORMED_CRITERION warning on the snapshot.
    - A stored rule that cannot be built drops only that rule, with a
      MALFORMED_RULE warning.
    - A missing or unrecognised default behavior resolves to "Not Allowed".

Failure modes:
    - SQLAlchemy errors propagate to the caller; nothing is swallowed here.

Audit relevance:
    Every skipped row is logged with its rule and entry ids so a reviewer can
    trace why a stored entry never participates in evaluation.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select

from coa_kernel.domain.combination_rules import (
    CombinationRule,
    ConfigurationWarning,
    DefaultBehavior,
    MappingEntry,
    WarningCode,
)
from coa_kernel.domain.hierarchy import (
    Hierarchy,
    HierarchySet,
    HierarchySetStatus,
    select_effective_hierarchy_set,
)
from coa_kernel.domain.snapshots import CatalogSnapshot, HierarchyIndex, RuleSetSnapshot
from coa_kernel.exceptions import CoaKernelError
from coa_kernel.logging_config import get_logger
from coa_kernel.models.combination_rules import CombinationRuleModel
from coa_kernel.models.hierarchies import HierarchyModel, HierarchySetModel
from coa_kernel.models.segments import SegmentCodeModel, SegmentModel
from coa_kernel.models.settings import (
    DEFAULT_BEHAVIOR_KEY,
    RULE_SET_VERSION_KEY,
    CoaSettingModel,
)
from coa_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.catalog")


class CatalogSelector(BaseSelector[SegmentModel]):
    """Loads read-only snapshots of the stored chart of accounts."""

    def load_catalog(self) -> CatalogSnapshot:
        segments = self.session.scalars(
            select(SegmentModel).order_by(SegmentModel.segment_id)
        ).all()
        codes = self.session.scalars(
            select(SegmentCodeModel).order_by(SegmentCodeModel.segment_id, SegmentCodeModel.code)
        ).all()
        return CatalogSnapshot(
            segments=[s.to_dto() for s in segments],
            codes=[c.to_dto() for c in codes],
        )

    def load_hierarchy_sets(self) -> tuple[HierarchySet, ...]:
        """All hierarchy sets in stored order."""
        rows = self.session.scalars(
            select(HierarchySetModel).order_by(HierarchySetModel.position)
        ).all()
        return tuple(row.to_dto() for row in rows)

    def load_hierarchy_index(self, on_date: date | datetime | None = None) -> HierarchyIndex:
        """Index over the hierarchies in force.

        With ``on_date`` only the effective hierarchy set contributes; without
        it every Active set does.  Hierarchies stored outside any set always
        contribute.
        """
        sets = self.load_hierarchy_sets()
        if on_date is None:
            chosen: list[HierarchySet] = [
                s for s in sets if s.status == HierarchySetStatus.ACTIVE
            ]
        else:
            effective = select_effective_hierarchy_set(sets, on_date)
            chosen = [effective] if effective is not None else []

        hierarchies: list[Hierarchy] = [h for s in chosen for h in s.hierarchies]
        loose = self.session.scalars(
            select(HierarchyModel)
            .where(HierarchyModel.set_id.is_(None))
            .order_by(HierarchyModel.hierarchy_id)
        ).all()
        hierarchies.extend(h.to_dto() for h in loose)

        logger.debug(
            "hierarchy_index_loaded",
            extra={
                "on_date": str(on_date) if on_date is not None else None,
                "set_ids": [s.set_id for s in chosen],
                "hierarchy_count": len(hierarchies),
            },
        )
        return HierarchyIndex(hierarchies)

    def load_rule_set(self) -> RuleSetSnapshot:
        rows = self.session.scalars(
            select(CombinationRuleModel).order_by(CombinationRuleModel.position)
        ).all()

        rules: list[CombinationRule] = []
        warnings: list[ConfigurationWarning] = []
        for row in rows:
            entries: list[MappingEntry] = []
            for entry_row in row.entries:
                try:
                    entries.append(entry_row.to_dto())
                except (CoaKernelError, ValueError) as exc:
                    warnings.append(
                        ConfigurationWarning(
                            code=WarningCode.MALFORMED_CRITERION,
                            message=f"Mapping entry skipped: {exc}",
                            rule_id=row.rule_id,
                            entry_id=entry_row.entry_id,
                        )
                    )
            try:
                rules.append(row.to_dto(entries=tuple(entries)))
            except (CoaKernelError, ValueError) as exc:
                warnings.append(
                    ConfigurationWarning(
                        code=WarningCode.MALFORMED_RULE,
                        message=f"Combination rule skipped: {exc}",
                        rule_id=row.rule_id,
                    )
                )

        for warning in warnings:
            logger.warning(
                "stored_rule_skipped",
                extra={
                    "warning_code": warning.code.value,
                    "rule_id": warning.rule_id,
                    "entry_id": warning.entry_id,
                    "detail": warning.message,
                },
            )

        version = self._rule_set_version()
        snapshot = RuleSetSnapshot(rules, version=version, load_warnings=warnings)
        logger.info(
            "rule_set_loaded",
            extra={
                "rule_count": len(snapshot),
                "rule_set_version": version,
                "skipped_count": len(warnings),
                "checksum": snapshot.checksum,
            },
        )
        return snapshot

    def load_default_behavior(self) -> DefaultBehavior:
        value = self._setting(DEFAULT_BEHAVIOR_KEY)
        if value is None:
            return DefaultBehavior.NOT_ALLOWED
        try:
            return DefaultBehavior(value)
        except ValueError:
            logger.warning(
                "default_behavior_unrecognised",
                extra={"value": value, "fallback": DefaultBehavior.NOT_ALLOWED.value},
            )
            return DefaultBehavior.NOT_ALLOWED

    def _rule_set_version(self) -> int:
        value = self._setting(RULE_SET_VERSION_KEY)
        if value is None or not value.isdigit():
            return 1
        return int(value)

    def _setting(self, key: str) -> str | None:
        return self.session.scalar(
            select(CoaSettingModel.value).where(CoaSettingModel.key == key)
        )
