"""
Module: fund_kernel.selectors.ledger_selector
Responsibility: Read-only queries over worker ledger entries: open salary
    lines and advances for settlement, per-worker balances, and filtered
    listings.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Worker balance = sum(credits) - sum(debits), derived on every call.
    - An advance is "unpaid" while no deduction entry points at it through
      ``linked_advance_id``.  The query uses NOT EXISTS, so an advance with
      a deduction is never offered to settlement twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, exists, func, select
from sqlalchemy.orm import aliased

from fund_kernel.db.types import ZERO, to_money
from fund_kernel.domain.ledger import EntryStatus, EntryType, LedgerCategory
from fund_kernel.domain.settlement import AdvanceLine, PendingSalaryLine
from fund_kernel.models.worker_ledger import WorkerLedgerEntry
from fund_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerEntryInfo:
    """Immutable view of a ledger entry."""

    id: UUID
    organization_id: UUID
    worker_id: UUID
    site_id: UUID | None
    fund_allocation_id: UUID | None
    linked_advance_id: UUID | None
    contract_id: UUID | None
    entry_type: EntryType
    category: LedgerCategory
    status: EntryStatus
    amount: Decimal
    description: str | None
    transaction_date: date
    paid_date: date | None
    payment_mode: str | None
    reference_number: str | None
    created_by_id: UUID

    @property
    def signed_amount(self) -> Decimal:
        """Positive for credits, negative for debits."""
        return self.amount if self.entry_type == EntryType.CREDIT else -self.amount


def entry_to_info(entry: WorkerLedgerEntry) -> LedgerEntryInfo:
    return LedgerEntryInfo(
        id=entry.id,
        organization_id=entry.organization_id,
        worker_id=entry.worker_id,
        site_id=entry.site_id,
        fund_allocation_id=entry.fund_allocation_id,
        linked_advance_id=entry.linked_advance_id,
        contract_id=entry.contract_id,
        entry_type=EntryType(entry.entry_type),
        category=LedgerCategory(entry.category),
        status=EntryStatus(entry.status),
        amount=to_money(entry.amount),
        description=entry.description,
        transaction_date=entry.transaction_date,
        paid_date=entry.paid_date,
        payment_mode=entry.payment_mode,
        reference_number=entry.reference_number,
        created_by_id=entry.created_by_id,
    )


@dataclass(frozen=True)
class CategoryTotal:
    entry_type: EntryType
    category: LedgerCategory
    total: Decimal
    count: int


@dataclass(frozen=True)
class WorkerBalance:
    """Derived account position of one worker."""

    worker_id: UUID
    total_credits: Decimal
    total_debits: Decimal
    categories: tuple[CategoryTotal, ...]

    @property
    def balance(self) -> Decimal:
        return self.total_credits - self.total_debits

    def total_for(self, category: LedgerCategory) -> Decimal:
        return sum(
            (c.total for c in self.categories if c.category == category),
            ZERO,
        )


class LedgerSelector(BaseSelector[WorkerLedgerEntry]):
    """Queries over the worker ledger."""

    def get_entry(self, entry_id: UUID) -> LedgerEntryInfo | None:
        entry = self.session.get(WorkerLedgerEntry, entry_id)
        return entry_to_info(entry) if entry else None

    def pending_salary_lines(
        self,
        worker_id: UUID,
        organization_id: UUID,
        site_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[PendingSalaryLine]:
        """Accrued salary still awaiting payment, optionally scoped."""
        stmt = select(WorkerLedgerEntry).where(
            WorkerLedgerEntry.organization_id == organization_id,
            WorkerLedgerEntry.worker_id == worker_id,
            WorkerLedgerEntry.category == LedgerCategory.PENDING_SALARY.value,
            WorkerLedgerEntry.status == EntryStatus.PENDING.value,
        )
        if site_id is not None:
            stmt = stmt.where(WorkerLedgerEntry.site_id == site_id)
        if start_date is not None:
            stmt = stmt.where(WorkerLedgerEntry.transaction_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(WorkerLedgerEntry.transaction_date <= end_date)
        stmt = stmt.order_by(WorkerLedgerEntry.transaction_date, WorkerLedgerEntry.id)

        return [
            PendingSalaryLine(
                entry_id=e.id,
                amount=to_money(e.amount),
                transaction_date=e.transaction_date,
                site_id=e.site_id,
            )
            for e in self.session.execute(stmt).scalars()
        ]

    def unpaid_advances(self, worker_id: UUID, organization_id: UUID) -> list[AdvanceLine]:
        """Advance credits of the worker that no deduction offsets yet."""
        deduction = aliased(WorkerLedgerEntry)
        offset = exists().where(
            and_(
                deduction.linked_advance_id == WorkerLedgerEntry.id,
                deduction.category == LedgerCategory.DEDUCTION.value,
            )
        )
        stmt = (
            select(WorkerLedgerEntry)
            .where(
                WorkerLedgerEntry.organization_id == organization_id,
                WorkerLedgerEntry.worker_id == worker_id,
                WorkerLedgerEntry.category == LedgerCategory.ADVANCE.value,
                WorkerLedgerEntry.entry_type == EntryType.CREDIT.value,
                ~offset,
            )
            .order_by(WorkerLedgerEntry.transaction_date, WorkerLedgerEntry.id)
        )
        return [
            AdvanceLine(
                entry_id=e.id,
                amount=to_money(e.amount),
                transaction_date=e.transaction_date,
                site_id=e.site_id,
            )
            for e in self.session.execute(stmt).scalars()
        ]

    def deduction_for_advance(self, advance_id: UUID) -> UUID | None:
        """Id of the deduction offsetting an advance, if any."""
        stmt = select(WorkerLedgerEntry.id).where(
            WorkerLedgerEntry.linked_advance_id == advance_id,
        )
        return self.session.execute(stmt).scalars().first()

    def worker_balance(self, worker_id: UUID, organization_id: UUID) -> WorkerBalance:
        stmt = (
            select(
                WorkerLedgerEntry.entry_type,
                WorkerLedgerEntry.category,
                func.coalesce(func.sum(WorkerLedgerEntry.amount), 0),
                func.count(WorkerLedgerEntry.id),
            )
            .where(
                WorkerLedgerEntry.organization_id == organization_id,
                WorkerLedgerEntry.worker_id == worker_id,
            )
            .group_by(WorkerLedgerEntry.entry_type, WorkerLedgerEntry.category)
            .order_by(WorkerLedgerEntry.entry_type, WorkerLedgerEntry.category)
        )
        categories = tuple(
            CategoryTotal(
                entry_type=EntryType(entry_type),
                category=LedgerCategory(category),
                total=to_money(total),
                count=count,
            )
            for entry_type, category, total, count in self.session.execute(stmt)
        )
        credits = sum(
            (c.total for c in categories if c.entry_type == EntryType.CREDIT), ZERO
        )
        debits = sum(
            (c.total for c in categories if c.entry_type == EntryType.DEBIT), ZERO
        )
        return WorkerBalance(
            worker_id=worker_id,
            total_credits=credits,
            total_debits=debits,
            categories=categories,
        )

    def list_entries(
        self,
        organization_id: UUID,
        worker_ids: frozenset[UUID] | None = None,
        site_id: UUID | None = None,
        entry_type: EntryType | None = None,
        category: LedgerCategory | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntryInfo]:
        """
        Filtered listing, newest first.  ``worker_ids=None`` means every
        worker in the organization; an empty set matches nothing.
        """
        stmt = select(WorkerLedgerEntry).where(
            WorkerLedgerEntry.organization_id == organization_id,
        )
        if worker_ids is not None:
            stmt = stmt.where(WorkerLedgerEntry.worker_id.in_(list(worker_ids)))
        if site_id is not None:
            stmt = stmt.where(WorkerLedgerEntry.site_id == site_id)
        if entry_type is not None:
            stmt = stmt.where(WorkerLedgerEntry.entry_type == entry_type.value)
        if category is not None:
            stmt = stmt.where(WorkerLedgerEntry.category == category.value)
        if start_date is not None:
            stmt = stmt.where(WorkerLedgerEntry.transaction_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(WorkerLedgerEntry.transaction_date <= end_date)
        stmt = stmt.order_by(
            WorkerLedgerEntry.transaction_date.desc(),
            WorkerLedgerEntry.created_at.desc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [entry_to_info(e) for e in self.session.execute(stmt).scalars()]
