"""
Module: fund_kernel.services.base
Responsibility: Common constructor for write-side services: the caller's
    session plus an injected clock.
Architecture position: Kernel > Services.  May import from db/, models/,
    domain/ and selectors/.

Services write with ``session.flush()`` only.  The caller owns commit and
rollback (``session_scope()`` or the test harness), which is what makes a
settlement or a gated spend a single unit of work: a service that committed
on its own could leave half a settlement behind after a later check fails.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from fund_kernel.db.base import Base
from fund_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Flush-only writer.  Query helpers belong in ``fund_kernel.selectors``."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
