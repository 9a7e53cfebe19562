"""
Module: coa_kernel.models.combination_rules
Responsibility: ORM persistence for combination rules and their ordered
    mapping entries.
Architecture position: Kernel > Models.  May import from db/base.py; DTO
    conversion imports domain value objects lazily.

Invariants enforced:
    - rule_id is unique; entry_id is unique within its rule.
    - Rule order is stored in ``position`` and entry order in
      ``MappingEntryModel.position``.  Both orders are semantically
      load-bearing and are restored exactly on conversion.
    - Criteria are stored as JSON in the authored camelCase shape
      (``criterion_to_dict``) and validated only when converted back.

Failure modes:
    - InvalidCriterionError from MappingEntryModel.to_dto() on a malformed
      stored criterion; CatalogSelector turns this into a warning.
    - InvalidRuleError from CombinationRuleModel.to_dto() when a stored
      rule pairs a segment with itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coa_kernel.db.base import UUID, TrackedBase

if TYPE_CHECKING:
    from coa_kernel.domain.combination_rules import CombinationRule, MappingEntry


class CombinationRuleModel(TrackedBase):
    """A named, ordered rule governing one (segment A, segment B) pair."""

    __tablename__ = "coa_combination_rules"

    __table_args__ = (
        UniqueConstraint("rule_id", name="uq_coa_combination_rule_id"),
        Index("idx_coa_rule_segments", "segment_a_id", "segment_b_id"),
        Index("idx_coa_rule_position", "position"),
    )

    rule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Active", nullable=False)
    segment_a_id: Mapped[str] = mapped_column(String(50), nullable=False)
    segment_b_id: Mapped[str] = mapped_column(String(50), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    last_modified_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_modified_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    entries: Mapped[list[MappingEntryModel]] = relationship(
        "MappingEntryModel",
        back_populates="rule",
        primaryjoin="CombinationRuleModel.rule_id == MappingEntryModel.rule_id",
        order_by="MappingEntryModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<CombinationRuleModel {self.rule_id} {self.segment_a_id}/{self.segment_b_id}>"

    def to_dto(self, entries: tuple[MappingEntry, ...] | None = None) -> CombinationRule:
        """Convert ORM model to frozen domain DTO.

        ``entries`` overrides the stored entries (used when some stored
        entries could not be converted).
        """
        from coa_kernel.domain.combination_rules import CombinationRule, RuleStatus

        if entries is None:
            entries = tuple(e.to_dto() for e in self.entries)
        return CombinationRule(
            rule_id=self.rule_id,
            name=self.name,
            status=RuleStatus(self.status),
            segment_a_id=self.segment_a_id,
            segment_b_id=self.segment_b_id,
            mapping_entries=entries,
            description=self.description,
            last_modified_date=self.last_modified_date,
            last_modified_by=self.last_modified_by,
        )

    @classmethod
    def from_dto(
        cls, dto: CombinationRule, created_by_id: UUID, position: int = 0
    ) -> CombinationRuleModel:
        """Create ORM model (with entries) from domain DTO."""
        return cls(
            rule_id=dto.rule_id,
            name=dto.name,
            status=dto.status.value,
            segment_a_id=dto.segment_a_id,
            segment_b_id=dto.segment_b_id,
            position=position,
            description=dto.description,
            last_modified_date=dto.last_modified_date,
            last_modified_by=dto.last_modified_by,
            created_by_id=created_by_id,
            entries=[
                MappingEntryModel.from_dto(e, dto.rule_id, created_by_id, index)
                for index, e in enumerate(dto.mapping_entries)
            ],
        )


class MappingEntryModel(TrackedBase):
    """One Include/Exclude line of a rule."""

    __tablename__ = "coa_mapping_entries"

    __table_args__ = (
        UniqueConstraint("rule_id", "entry_id", name="uq_coa_mapping_entry"),
        ForeignKeyConstraint(
            ["rule_id"],
            ["coa_combination_rules.rule_id"],
            name="fk_coa_mapping_entry_rule",
            ondelete="CASCADE",
        ),
    )

    entry_id: Mapped[str] = mapped_column(String(100), nullable=False)
    rule_id: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    behavior: Mapped[str] = mapped_column(String(10), nullable=False)
    segment_a_criterion: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    segment_b_criterion: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    rule: Mapped[CombinationRuleModel] = relationship(
        "CombinationRuleModel",
        back_populates="entries",
        primaryjoin="MappingEntryModel.rule_id == CombinationRuleModel.rule_id",
    )

    def __repr__(self) -> str:
        return f"<MappingEntryModel {self.rule_id}:{self.entry_id} #{self.position}>"

    def to_dto(self) -> MappingEntry:
        """Convert ORM model to frozen domain DTO.

        Raises:
            InvalidCriterionError: stored criterion is malformed.
        """
        from coa_kernel.domain.combination_rules import (
            EntryBehavior,
            MappingEntry,
            criterion_from_dict,
        )

        return MappingEntry(
            entry_id=self.entry_id,
            behavior=EntryBehavior(self.behavior),
            segment_a_criterion=criterion_from_dict(self.segment_a_criterion or {}),
            segment_b_criterion=criterion_from_dict(self.segment_b_criterion or {}),
        )

    @classmethod
    def from_dto(
        cls,
        dto: MappingEntry,
        rule_id: str,
        created_by_id: UUID,
        position: int = 0,
    ) -> MappingEntryModel:
        """Create ORM model from domain DTO."""
        from coa_kernel.domain.combination_rules import criterion_to_dict

        return cls(
            entry_id=dto.entry_id,
            rule_id=rule_id,
            position=position,
            behavior=dto.behavior.value,
            segment_a_criterion=criterion_to_dict(dto.segment_a_criterion),
            segment_b_criterion=criterion_to_dict(dto.segment_b_criterion),
            created_by_id=created_by_id,
        )
