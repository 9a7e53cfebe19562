"""
Module: coa_kernel.models.hierarchies
Responsibility: ORM persistence for hierarchy sets, per-segment hierarchies
    and their nodes.
Architecture position: Kernel > Models.  May import from db/base.py; DTO
    conversion imports domain value objects lazily.

Invariants enforced:
    - set_id and hierarchy_id are unique.
    - node_id is unique within its hierarchy.
    - Tree shape is stored as parent_id + position; children are derived
      on conversion, in position order.  Nothing here assumes the stored
      graph is acyclic -- cycle handling belongs to HierarchyIndex.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Date,
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
    from coa_kernel.domain.hierarchy import Hierarchy, HierarchyNode, HierarchySet


class HierarchySetModel(TrackedBase):
    """Named bundle of hierarchies with its own validity window."""

    __tablename__ = "coa_hierarchy_sets"

    __table_args__ = (
        UniqueConstraint("set_id", name="uq_coa_hierarchy_set_id"),
    )

    set_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Active", nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    valid_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    last_modified_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_modified_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    hierarchies: Mapped[list[HierarchyModel]] = relationship(
        "HierarchyModel",
        back_populates="hierarchy_set",
        primaryjoin="HierarchySetModel.set_id == HierarchyModel.set_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<HierarchySetModel {self.set_id}>"

    def to_dto(self) -> HierarchySet:
        """Convert ORM model to frozen domain DTO."""
        from coa_kernel.domain.hierarchy import HierarchySet, HierarchySetStatus

        return HierarchySet(
            set_id=self.set_id,
            name=self.name,
            status=HierarchySetStatus(self.status),
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            hierarchies=tuple(h.to_dto() for h in self.hierarchies),
            description=self.description,
            last_modified_date=self.last_modified_date,
            last_modified_by=self.last_modified_by,
        )

    @classmethod
    def from_dto(
        cls, dto: HierarchySet, created_by_id: UUID, position: int = 0
    ) -> HierarchySetModel:
        """Create ORM model (with hierarchies and nodes) from domain DTO."""
        return cls(
            set_id=dto.set_id,
            name=dto.name,
            status=dto.status.value,
            position=position,
            valid_from=dto.valid_from,
            valid_to=dto.valid_to,
            description=dto.description,
            last_modified_date=dto.last_modified_date,
            last_modified_by=dto.last_modified_by,
            created_by_id=created_by_id,
            hierarchies=[HierarchyModel.from_dto(h, created_by_id) for h in dto.hierarchies],
        )


class HierarchyModel(TrackedBase):
    """A forest of nodes over one segment's codes."""

    __tablename__ = "coa_hierarchies"

    __table_args__ = (
        UniqueConstraint("hierarchy_id", name="uq_coa_hierarchy_id"),
        ForeignKeyConstraint(
            ["set_id"],
            ["coa_hierarchy_sets.set_id"],
            name="fk_coa_hierarchy_set",
            ondelete="CASCADE",
        ),
        Index("idx_coa_hierarchy_segment", "segment_id"),
    )

    hierarchy_id: Mapped[str] = mapped_column(String(100), nullable=False)
    set_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    segment_id: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    hierarchy_set: Mapped[HierarchySetModel | None] = relationship(
        "HierarchySetModel",
        back_populates="hierarchies",
        primaryjoin="HierarchyModel.set_id == HierarchySetModel.set_id",
    )

    nodes: Mapped[list[HierarchyNodeModel]] = relationship(
        "HierarchyNodeModel",
        back_populates="hierarchy",
        primaryjoin="HierarchyModel.hierarchy_id == HierarchyNodeModel.hierarchy_id",
        order_by="HierarchyNodeModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<HierarchyModel {self.hierarchy_id} segment={self.segment_id}>"

    def to_dto(self) -> Hierarchy:
        """Convert ORM model to frozen domain DTO; children follow position order."""
        from coa_kernel.domain.hierarchy import Hierarchy

        children: dict[str, list[str]] = {}
        for node in self.nodes:
            if node.parent_id is not None:
                children.setdefault(node.parent_id, []).append(node.node_id)

        return Hierarchy(
            hierarchy_id=self.hierarchy_id,
            segment_id=self.segment_id,
            nodes=tuple(n.to_dto(tuple(children.get(n.node_id, ()))) for n in self.nodes),
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: Hierarchy, created_by_id: UUID) -> HierarchyModel:
        """Create ORM model from domain DTO.

        Parent links come from ``parent_id`` or, failing that, from the
        parent's ``children`` list.
        """
        parent_of: dict[str, str] = {}
        for node in dto.nodes:
            for child_id in node.children:
                parent_of.setdefault(child_id, node.node_id)

        return cls(
            hierarchy_id=dto.hierarchy_id,
            segment_id=dto.segment_id,
            description=dto.description,
            created_by_id=created_by_id,
            nodes=[
                HierarchyNodeModel(
                    node_id=node.node_id,
                    hierarchy_id=dto.hierarchy_id,
                    segment_code=node.segment_code,
                    parent_id=node.parent_id or parent_of.get(node.node_id),
                    position=position,
                    description=node.description,
                    created_by_id=created_by_id,
                )
                for position, node in enumerate(dto.nodes)
            ],
        )


class HierarchyNodeModel(TrackedBase):
    """One node; ``segment_code`` is None for a pure grouping node."""

    __tablename__ = "coa_hierarchy_nodes"

    __table_args__ = (
        UniqueConstraint("hierarchy_id", "node_id", name="uq_coa_hierarchy_node"),
        ForeignKeyConstraint(
            ["hierarchy_id"],
            ["coa_hierarchies.hierarchy_id"],
            name="fk_coa_hierarchy_node_hierarchy",
            ondelete="CASCADE",
        ),
        Index("idx_coa_hierarchy_node_parent", "parent_id"),
    )

    node_id: Mapped[str] = mapped_column(String(100), nullable=False)
    hierarchy_id: Mapped[str] = mapped_column(String(100), nullable=False)
    segment_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    hierarchy: Mapped[HierarchyModel] = relationship(
        "HierarchyModel",
        back_populates="nodes",
        primaryjoin="HierarchyNodeModel.hierarchy_id == HierarchyModel.hierarchy_id",
    )

    def __repr__(self) -> str:
        return f"<HierarchyNodeModel {self.hierarchy_id}:{self.node_id}>"

    def to_dto(self, children: tuple[str, ...] = ()) -> HierarchyNode:
        """Convert ORM model to frozen domain DTO."""
        from coa_kernel.domain.hierarchy import HierarchyNode

        return HierarchyNode(
            node_id=self.node_id,
            hierarchy_id=self.hierarchy_id,
            segment_code=self.segment_code,
            parent_id=self.parent_id,
            children=children,
            description=self.description,
        )
