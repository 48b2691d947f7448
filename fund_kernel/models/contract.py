"""
Module: fund_kernel.models.contract
Responsibility: ORM persistence for fixed-price worker contracts.
Architecture position: Kernel > Models.  May import from db/base.py only.

``total_paid`` is a running total maintained by ContractService alongside
the contract_payment ledger credits it writes; it never exceeds
``total_amount``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase


class Contract(TrackedBase):
    __tablename__ = "contracts"

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="total_positive"),
        CheckConstraint("total_paid <= total_amount", name="not_overpaid"),
        Index("idx_contract_worker_status", "worker_id", "status"),
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

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    total_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    @property
    def remaining_amount(self) -> Decimal:
        return self.total_amount - self.total_paid

    def __repr__(self) -> str:
        return f"<Contract {self.title} {self.total_paid}/{self.total_amount} [{self.status}]>"
