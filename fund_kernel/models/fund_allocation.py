"""
Module: fund_kernel.models.fund_allocation
Responsibility: ORM persistence for fund allocations -- directed, stateful
    transfers of a fixed amount from one user to another.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced (service layer, this model is the data source):
    - Only DISBURSED allocations may be referenced by a consuming record
      (expense, bill, ledger entry, sub-allocation).
    - amount is immutable once status is DISBURSED.
    - status transitions follow fund_kernel.domain.allocation.ALLOCATION_TRANSITIONS.
    - created_by_id is always the from_user.

Audit relevance:
    Every wallet and allocation balance is derived from these rows at query
    time; there is no stored balance column.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase


class FundAllocation(TrackedBase):
    """
    A transfer of ``amount`` from ``from_user_id`` to ``to_user_id``.

    ``source_allocation_id`` is set when a recipient passes money further
    down the hierarchy out of a specific allocation they received; the
    sub-allocation then counts against that allocation's remaining balance.
    """

    __tablename__ = "fund_allocations"

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("idx_allocation_org_from", "organization_id", "from_user_id"),
        Index("idx_allocation_org_to", "organization_id", "to_user_id"),
        Index("idx_allocation_site_status", "site_id", "status"),
        Index("idx_allocation_source", "source_allocation_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
    )

    from_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    to_user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    site_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sites.id"),
        nullable=True,
    )

    source_allocation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fund_allocations.id"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    purpose: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="site_expense",
    )

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
    )

    allocation_date: Mapped[date] = mapped_column(Date, nullable=False)

    disbursed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    @property
    def is_self_allocation(self) -> bool:
        return self.from_user_id == self.to_user_id

    def __repr__(self) -> str:
        return (
            f"<FundAllocation {self.id} {self.amount} "
            f"{self.from_user_id}->{self.to_user_id} [{self.status}]>"
        )
