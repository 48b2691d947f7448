"""
Module: fund_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit() or session.flush().  The one
      exception is row locking (``SELECT ... FOR UPDATE``), which reads.
    - DTO return convention: selectors return frozen dataclasses or computed
      results, not ORM instances.
    - No stored balances: every balance is derived from the transfer and
      consumption rows on each call.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from fund_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
