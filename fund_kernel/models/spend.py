"""
Module: fund_kernel.models.spend
Responsibility: ORM persistence for the two non-ledger consumers of funds:
    expenses (a user's own spending) and vendor bills.
Architecture position: Kernel > Models.  May import from db/base.py only.

Consumption rules (read by fund_kernel.selectors.balance_selector):
    - An expense consumes funds unless its status is ``rejected``.
    - A bill consumes funds once its status is ``credited`` or ``paid``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fund_kernel.db.base import TrackedBase


class Expense(TrackedBase):
    """Money spent by ``user_id`` out of an allocation they hold."""

    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("idx_expense_user", "organization_id", "user_id"),
        Index("idx_expense_allocation_status", "fund_allocation_id", "status"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"),
        nullable=False,
    )

    site_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sites.id"),
        nullable=True,
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    fund_allocation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fund_allocations.id"),
        nullable=True,
    )

    category: Mapped[str] = mapped_column(String(50), nullable=False, default="other")

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    expense_date: Mapped[date] = mapped_column(Date, nullable=False)

    approved_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Expense {self.amount} user={self.user_id} [{self.status}]>"


class Bill(TrackedBase):
    """
    A vendor invoice.  ``created_by_id`` is the spender for wallet purposes.

    ``total_amount`` = ``base_amount`` + ``gst_amount``.
    """

    __tablename__ = "bills"

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="total_positive"),
        Index("idx_bill_allocation_status", "fund_allocation_id", "status"),
        Index("idx_bill_creator", "organization_id", "created_by_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"),
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

    vendor_name: Mapped[str] = mapped_column(String(255), nullable=False)

    vendor_gst_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    bill_type: Mapped[str] = mapped_column(String(30), nullable=False, default="material")

    base_amount: Mapped[Decimal] = mapped_column(nullable=False)

    gst_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    bill_date: Mapped[date] = mapped_column(Date, nullable=False)

    credited_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Bill {self.vendor_name} {self.total_amount} [{self.status}]>"
