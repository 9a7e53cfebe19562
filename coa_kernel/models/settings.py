"""
Module: coa_kernel.models.settings
Responsibility: Key/value store for global chart-of-accounts settings,
    notably the combination rule default behavior and the published rule
    set version.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coa_kernel.db.base import TrackedBase

DEFAULT_BEHAVIOR_KEY = "combination_rules.default_behavior"
RULE_SET_VERSION_KEY = "combination_rules.version"


class CoaSettingModel(TrackedBase):
    """One global setting."""

    __tablename__ = "coa_settings"

    __table_args__ = (
        UniqueConstraint("key", name="uq_coa_setting_key"),
    )

    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False)

    def __repr__(self) -> str:
        return f"<CoaSettingModel {self.key}={self.value!r}>"
