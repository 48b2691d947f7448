"""
Module: fund_kernel.selectors.allocation_selector
Responsibility: Read-only queries over fund allocations: lookup, role-scoped
    listing, per-user flow summary, and the reference counts that decide
    whether an allocation may be deleted.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from fund_kernel.db.types import to_money
from fund_kernel.domain.allocation import AllocationPurpose, AllocationStatus
from fund_kernel.domain.authority import Actor, Role
from fund_kernel.models.contract import Contract
from fund_kernel.models.fund_allocation import FundAllocation
from fund_kernel.models.spend import Bill, Expense
from fund_kernel.models.worker_ledger import WorkerLedgerEntry
from fund_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AllocationInfo:
    """Immutable view of a fund allocation."""

    id: UUID
    organization_id: UUID
    from_user_id: UUID
    to_user_id: UUID
    site_id: UUID | None
    source_allocation_id: UUID | None
    amount: Decimal
    purpose: AllocationPurpose
    description: str | None
    status: AllocationStatus
    allocation_date: date
    disbursed_at: datetime | None
    reference_number: str | None
    created_by_id: UUID

    @property
    def is_disbursed(self) -> bool:
        return self.status == AllocationStatus.DISBURSED

    @property
    def is_self_allocation(self) -> bool:
        return self.from_user_id == self.to_user_id


def allocation_to_info(allocation: FundAllocation) -> AllocationInfo:
    return AllocationInfo(
        id=allocation.id,
        organization_id=allocation.organization_id,
        from_user_id=allocation.from_user_id,
        to_user_id=allocation.to_user_id,
        site_id=allocation.site_id,
        source_allocation_id=allocation.source_allocation_id,
        amount=to_money(allocation.amount),
        purpose=AllocationPurpose(allocation.purpose),
        description=allocation.description,
        status=AllocationStatus(allocation.status),
        allocation_date=allocation.allocation_date,
        disbursed_at=allocation.disbursed_at,
        reference_number=allocation.reference_number,
        created_by_id=allocation.created_by_id,
    )


@dataclass(frozen=True)
class FlowSummary:
    """Money moving through one user, excluding self-allocations."""

    user_id: UUID
    received: Decimal
    passed_down: Decimal
    pending_to_receive: Decimal


class AllocationSelector(BaseSelector[FundAllocation]):
    """Queries over fund allocations."""

    def get(self, allocation_id: UUID) -> AllocationInfo | None:
        allocation = self.session.get(FundAllocation, allocation_id)
        return allocation_to_info(allocation) if allocation else None

    def list_visible(
        self,
        actor: Actor,
        status: AllocationStatus | None = None,
        site_id: UUID | None = None,
    ) -> list[AllocationInfo]:
        """
        Allocations the actor may see: the whole organization for a
        Developer, sent or received for Engineers and Supervisors, received
        for Workers.  Newest first.
        """
        stmt = select(FundAllocation).where(
            FundAllocation.organization_id == actor.organization_id,
        )
        if actor.role == Role.WORKER:
            stmt = stmt.where(FundAllocation.to_user_id == actor.user_id)
        elif not actor.is_developer:
            stmt = stmt.where(
                or_(
                    FundAllocation.from_user_id == actor.user_id,
                    FundAllocation.to_user_id == actor.user_id,
                )
            )
        if status is not None:
            stmt = stmt.where(FundAllocation.status == status.value)
        if site_id is not None:
            stmt = stmt.where(FundAllocation.site_id == site_id)
        stmt = stmt.order_by(
            FundAllocation.allocation_date.desc(),
            FundAllocation.created_at.desc(),
        )
        return [allocation_to_info(a) for a in self.session.execute(stmt).scalars()]

    def _sum(self, *criteria) -> Decimal:
        stmt = select(func.coalesce(func.sum(FundAllocation.amount), 0)).where(*criteria)
        return to_money(self.session.execute(stmt).scalar())

    def flow_summary(self, user_id: UUID, organization_id: UUID) -> FlowSummary:
        received = self._sum(
            FundAllocation.organization_id == organization_id,
            FundAllocation.to_user_id == user_id,
            FundAllocation.from_user_id != user_id,
            FundAllocation.status == AllocationStatus.DISBURSED.value,
        )
        passed_down = self._sum(
            FundAllocation.organization_id == organization_id,
            FundAllocation.from_user_id == user_id,
            FundAllocation.to_user_id != user_id,
            FundAllocation.status == AllocationStatus.DISBURSED.value,
        )
        pending = self._sum(
            FundAllocation.organization_id == organization_id,
            FundAllocation.to_user_id == user_id,
            FundAllocation.from_user_id != user_id,
            FundAllocation.status.in_(
                (AllocationStatus.PENDING.value, AllocationStatus.APPROVED.value)
            ),
        )
        return FlowSummary(
            user_id=user_id,
            received=received,
            passed_down=passed_down,
            pending_to_receive=pending,
        )

    def reference_counts(self, allocation_id: UUID) -> dict[str, int]:
        """Number of records of each kind that name the allocation as funding source."""

        def _count(model, column) -> int:
            stmt = select(func.count(model.id)).where(column == allocation_id)
            return self.session.execute(stmt).scalar_one()

        counts = {
            "expenses": _count(Expense, Expense.fund_allocation_id),
            "bills": _count(Bill, Bill.fund_allocation_id),
            "ledger_entries": _count(WorkerLedgerEntry, WorkerLedgerEntry.fund_allocation_id),
            "contracts": _count(Contract, Contract.fund_allocation_id),
            "sub_allocations": _count(FundAllocation, FundAllocation.source_allocation_id),
        }
        return {name: n for name, n in counts.items() if n}
