"""
Module: coa_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors provide structured read access to the stored chart of accounts
    without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/base.py and
    models/.  Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen domain snapshots, NOT raw
      ORM model instances.
    - Session ownership: the caller owns the session and its transaction
      scope, so every load inside one session sees one consistent state.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from coa_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or snapshots.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
