"""
Module: fund_kernel.models.worker_ledger
Responsibility: ORM persistence for worker ledger entries -- one-sided
    credits and debits on a worker's account.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - amount > 0 (direction is carried by entry_type, never by sign).
    - A deduction's linked_advance_id is UNIQUE, so an advance can be
      offset at most once even under concurrent settlement.
    - A worker's balance is derived (credits - debits), never stored.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase


class WorkerLedgerEntry(TrackedBase):
    """
    A single movement on a worker's account.

    ``fund_allocation_id`` is set when the entry moves cash out of an
    allocation (salary, advance, bonus, contract payment).  Settlement also
    stamps it on the pending_salary entries it marks paid, for provenance.
    ``linked_advance_id`` is set only on deduction debits and points at the
    advance credit being offset.
    """

    __tablename__ = "worker_ledger_entries"

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        UniqueConstraint("linked_advance_id", name="uq_worker_ledger_entries_linked_advance_id"),
        Index("idx_ledger_worker_status", "worker_id", "category", "status"),
        Index("idx_ledger_allocation", "fund_allocation_id"),
        Index("idx_ledger_org_date", "organization_id", "transaction_date"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
    )

    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    site_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sites.id"),
        nullable=True,
    )

    fund_allocation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fund_allocations.id"),
        nullable=True,
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("contracts.id"),
        nullable=True,
    )

    linked_advance_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("worker_ledger_entries.id"),
        nullable=True,
    )

    entry_type: Mapped[str] = mapped_column(String(10), nullable=False)

    category: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="paid",
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    payment_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WorkerLedgerEntry {self.entry_type}/{self.category} "
            f"{self.amount} worker={self.worker_id} [{self.status}]>"
        )
