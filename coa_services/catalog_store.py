"""
CatalogStore -- persist chart-of-accounts snapshots.

Responsibility:
    Write the segment catalog, hierarchy sets, the ordered rule set and
    the global default behavior to the store, so that ``CatalogSelector``
    can later read back equivalent snapshots.

Architecture position:
    Services -- imperative shell.  Uses ORM models' ``from_dto``; reads go
    through ``coa_kernel.selectors``.

Invariants enforced:
    - Replacement semantics: each ``save_*`` call replaces what it owns.
    - Rule and entry order is written as ``position`` so it survives the
      round trip; the rule set version is written alongside.
    - Flush only; the caller owns the transaction.

Failure modes:
    - IntegrityError on duplicate business keys (segment id, code, rule id).
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select

from coa_kernel.domain.combination_rules import DefaultBehavior
from coa_kernel.domain.hierarchy import HierarchySet
from coa_kernel.domain.snapshots import CatalogSnapshot, RuleSetSnapshot
from coa_kernel.logging_config import get_logger
from coa_kernel.models.combination_rules import CombinationRuleModel
from coa_kernel.models.hierarchies import HierarchySetModel
from coa_kernel.models.segments import SegmentCodeModel, SegmentModel
from coa_kernel.models.settings import (
    DEFAULT_BEHAVIOR_KEY,
    RULE_SET_VERSION_KEY,
    CoaSettingModel,
)
from coa_services.base import BaseService

logger = get_logger("services.catalog_store")


class CatalogStore(BaseService[SegmentModel]):
    """Writes snapshots on behalf of ``actor_id``."""

    def __init__(self, session, actor_id: UUID):
        super().__init__(session)
        self._actor_id = actor_id

    def save_catalog(self, catalog: CatalogSnapshot) -> None:
        self.session.execute(delete(SegmentCodeModel))
        self.session.execute(delete(SegmentModel))
        self.session.flush()

        self.session.add_all(SegmentModel.from_dto(s, self._actor_id) for s in catalog.segments)
        self.session.flush()
        self.session.add_all(SegmentCodeModel.from_dto(c, self._actor_id) for c in catalog.codes)
        self.session.flush()
        logger.info(
            "catalog_saved",
            extra={"segment_count": len(catalog.segments), "code_count": len(catalog.codes)},
        )

    def save_hierarchy_sets(self, hierarchy_sets: Iterable[HierarchySet]) -> None:
        for row in self.session.scalars(select(HierarchySetModel)).all():
            self.session.delete(row)
        self.session.flush()

        hierarchy_sets = tuple(hierarchy_sets)
        self.session.add_all(
            HierarchySetModel.from_dto(s, self._actor_id, position)
            for position, s in enumerate(hierarchy_sets)
        )
        self.session.flush()
        logger.info(
            "hierarchy_sets_saved",
            extra={"set_ids": [s.set_id for s in hierarchy_sets]},
        )

    def save_rule_set(self, rule_set: RuleSetSnapshot) -> None:
        for row in self.session.scalars(select(CombinationRuleModel)).all():
            self.session.delete(row)
        self.session.flush()

        self.session.add_all(
            CombinationRuleModel.from_dto(rule, self._actor_id, position)
            for position, rule in enumerate(rule_set.rules)
        )
        self._set_setting(RULE_SET_VERSION_KEY, str(rule_set.version))
        self.session.flush()
        logger.info(
            "rule_set_saved",
            extra={
                "rule_count": len(rule_set),
                "rule_set_version": rule_set.version,
                "checksum": rule_set.checksum,
            },
        )

    def save_default_behavior(self, default_behavior: DefaultBehavior) -> None:
        self._set_setting(DEFAULT_BEHAVIOR_KEY, default_behavior.value)
        self.session.flush()
        logger.info("default_behavior_saved", extra={"value": default_behavior.value})

    def import_configuration(self, config) -> None:
        """Persist every part of a ``coa_config.CoaConfiguration``."""
        self.save_catalog(config.catalog)
        self.save_hierarchy_sets(config.hierarchy_sets)
        self.save_rule_set(config.rule_set)
        self.save_default_behavior(config.default_behavior)
        logger.info(
            "configuration_imported",
            extra={"config_id": config.config_id, "config_version": config.version},
        )

    def _set_setting(self, key: str, value: str) -> None:
        row = self.session.scalar(select(CoaSettingModel).where(CoaSettingModel.key == key))
        if row is None:
            self.session.add(
                CoaSettingModel(key=key, value=value, created_by_id=self._actor_id)
            )
        else:
            row.value = value
            row.updated_by_id = self._actor_id
