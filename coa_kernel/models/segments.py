"""
Module: coa_kernel.models.segments
Responsibility: ORM persistence for segments (the coding dimensions of an
    account string) and their codes.
Architecture position: Kernel > Models.  May import from db/base.py; DTO
    conversion imports domain value objects lazily.
    MUST NOT import from selectors/ or outer layers.

Invariants enforced:
    - segment_id is unique and is the key rules and hierarchies reference.
    - (segment_id, code) is unique; codes reference an existing segment
      (FK RESTRICT).
    - valid_from <= valid_to is checked when converting to the domain DTO.

Failure modes:
    - IntegrityError on a duplicate segment_id or (segment_id, code).
    - InvalidValidityWindowError / InvalidSegmentError from to_dto() on
      malformed stored rows.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKeyConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coa_kernel.db.base import UUID, TrackedBase

if TYPE_CHECKING:
    from coa_kernel.domain.segments import Segment, SegmentCode


class SegmentModel(TrackedBase):
    """One coding dimension (Fund, Object, Department, ...)."""

    __tablename__ = "coa_segments"

    __table_args__ = (
        UniqueConstraint("segment_id", name="uq_coa_segment_id"),
    )

    segment_id: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    segment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_core: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_mandatory_for_coding: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    separator: Mapped[str] = mapped_column(String(1), default="-", nullable=False)
    validation_pattern: Mapped[str | None] = mapped_column(String(200), nullable=True)
    default_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    data_type: Mapped[str] = mapped_column(String(20), default="Alphanumeric", nullable=False)
    max_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    valid_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<SegmentModel {self.segment_id}>"

    def to_dto(self) -> Segment:
        """Convert ORM model to frozen domain DTO."""
        from coa_kernel.domain.segments import Segment, SegmentDataType

        return Segment(
            segment_id=self.segment_id,
            display_name=self.display_name,
            segment_type=self.segment_type,
            is_active=self.is_active,
            is_core=self.is_core,
            is_mandatory_for_coding=self.is_mandatory_for_coding,
            separator=self.separator,
            validation_pattern=self.validation_pattern,
            default_code=self.default_code,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            data_type=SegmentDataType(self.data_type),
            max_length=self.max_length,
            is_custom=self.is_custom,
        )

    @classmethod
    def from_dto(cls, dto: Segment, created_by_id: UUID) -> SegmentModel:
        """Create ORM model from domain DTO."""
        return cls(
            segment_id=dto.segment_id,
            display_name=dto.display_name,
            segment_type=dto.segment_type,
            is_active=dto.is_active,
            is_core=dto.is_core,
            is_mandatory_for_coding=dto.is_mandatory_for_coding,
            is_custom=dto.is_custom,
            separator=dto.separator,
            validation_pattern=dto.validation_pattern,
            default_code=dto.default_code,
            data_type=dto.data_type.value,
            max_length=dto.max_length,
            valid_from=dto.valid_from,
            valid_to=dto.valid_to,
            created_by_id=created_by_id,
        )


class SegmentCodeModel(TrackedBase):
    """A selectable value within a segment, with its own validity window."""

    __tablename__ = "coa_segment_codes"

    __table_args__ = (
        UniqueConstraint("segment_id", "code", name="uq_coa_segment_code"),
        ForeignKeyConstraint(
            ["segment_id"],
            ["coa_segments.segment_id"],
            name="fk_coa_segment_code_segment",
            ondelete="RESTRICT",
        ),
        Index("idx_coa_segment_code_segment", "segment_id"),
    )

    segment_id: Mapped[str] = mapped_column(String(50), nullable=False)
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    code_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    valid_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    summary_indicator: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    available_for_transaction_coding: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    available_for_budgeting: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    default_parent_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<SegmentCodeModel {self.segment_id}:{self.code}>"

    def to_dto(self) -> SegmentCode:
        """Convert ORM model to frozen domain DTO."""
        from coa_kernel.domain.segments import SegmentCode

        return SegmentCode(
            segment_id=self.segment_id,
            code=self.code,
            description=self.description,
            is_active=self.is_active,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            summary_indicator=self.summary_indicator,
            available_for_transaction_coding=self.available_for_transaction_coding,
            available_for_budgeting=self.available_for_budgeting,
            default_parent_code=self.default_parent_code,
            code_id=self.code_id,
        )

    @classmethod
    def from_dto(cls, dto: SegmentCode, created_by_id: UUID) -> SegmentCodeModel:
        """Create ORM model from domain DTO."""
        return cls(
            segment_id=dto.segment_id,
            code=dto.code,
            code_id=dto.code_id,
            description=dto.description,
            is_active=dto.is_active,
            valid_from=dto.valid_from,
            valid_to=dto.valid_to,
            summary_indicator=dto.summary_indicator,
            available_for_transaction_coding=dto.available_for_transaction_coding,
            available_for_budgeting=dto.available_for_budgeting,
            default_parent_code=dto.default_parent_code,
            created_by_id=created_by_id,
        )
