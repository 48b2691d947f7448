"""
Settlement planning (``fund_kernel.domain.settlement``).

Responsibility
--------------
Pure computation of what a salary settlement will do, before anything is
written.  ``SettlementService`` loads the worker's open ledger lines, asks
this module for a plan, checks the plan's ``payable_amount`` against the
fund allocation, and only then applies it.  Because the full plan exists
before the first write, a rejected settlement leaves the session untouched.

Arithmetic
----------
::

    total_pending  = sum(pending_salary entries still pending)
    total_advances = sum(advance credits with no deduction pointing at them)
    net_payable    = total_pending - total_advances      (may be <= 0)
    payable_amount = max(net_payable, 0)                  (cash that leaves)

For a batch, the allocation must cover the sum of ``payable_amount`` across
every planned worker.  A worker whose advances exceed their pending salary
contributes zero; their surplus never offsets another worker's pay.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from fund_kernel.db.types import ZERO, round_money


@dataclass(frozen=True)
class PendingSalaryLine:
    """An accrued, unpaid pending_salary entry."""

    entry_id: UUID
    amount: Decimal
    transaction_date: date | None = None
    site_id: UUID | None = None


@dataclass(frozen=True)
class AdvanceLine:
    """An advance credit not yet offset by a deduction."""

    entry_id: UUID
    amount: Decimal
    transaction_date: date | None = None
    site_id: UUID | None = None


@dataclass(frozen=True)
class WorkerSettlementPlan:
    """Everything a single-worker settlement will write, computed up front."""

    worker_id: UUID
    pending: tuple[PendingSalaryLine, ...]
    advances: tuple[AdvanceLine, ...]

    @property
    def total_pending(self) -> Decimal:
        return round_money(sum((line.amount for line in self.pending), ZERO))

    @property
    def total_advances(self) -> Decimal:
        return round_money(sum((line.amount for line in self.advances), ZERO))

    @property
    def net_payable(self) -> Decimal:
        return self.total_pending - self.total_advances

    @property
    def payable_amount(self) -> Decimal:
        """Cash drawn from the allocation; never negative."""
        return max(self.net_payable, ZERO)

    @property
    def has_pending_work(self) -> bool:
        return len(self.pending) > 0


def plan_worker_settlement(
    worker_id: UUID,
    pending: list[PendingSalaryLine] | tuple[PendingSalaryLine, ...],
    advances: list[AdvanceLine] | tuple[AdvanceLine, ...],
) -> WorkerSettlementPlan:
    """Build a plan, ordering lines deterministically by date then id."""

    def _key(line):
        return (line.transaction_date or date.min, str(line.entry_id))

    return WorkerSettlementPlan(
        worker_id=worker_id,
        pending=tuple(sorted(pending, key=_key)),
        advances=tuple(sorted(advances, key=_key)),
    )


@dataclass(frozen=True)
class BatchSettlementPlan:
    """Plans for every eligible worker in a bulk payment."""

    plans: tuple[WorkerSettlementPlan, ...]

    @property
    def total_pending(self) -> Decimal:
        return round_money(sum((p.total_pending for p in self.plans), ZERO))

    @property
    def total_advances(self) -> Decimal:
        return round_money(sum((p.total_advances for p in self.plans), ZERO))

    @property
    def required_amount(self) -> Decimal:
        """Sum of per-worker cash payouts the allocation must cover."""
        return round_money(sum((p.payable_amount for p in self.plans), ZERO))


@dataclass(frozen=True)
class SettlementSummary:
    """Result of settling one worker."""

    worker_id: UUID
    allocation_id: UUID
    gross_salary: Decimal
    advances_deducted: Decimal
    net_payable: Decimal
    net_paid: Decimal
    pending_entries_settled: int
    advances_settled: int
    deduction_entry_ids: tuple[UUID, ...]
    payment_entry_id: UUID | None
    paid_date: date


@dataclass(frozen=True)
class BulkSettlementSummary:
    """Result of a bulk payment; lists processed workers only."""

    allocation_id: UUID
    requested_count: int
    workers: tuple[SettlementSummary, ...]

    @property
    def workers_processed(self) -> int:
        return len(self.workers)

    @property
    def total_gross(self) -> Decimal:
        return round_money(sum((w.gross_salary for w in self.workers), ZERO))

    @property
    def total_advances(self) -> Decimal:
        return round_money(sum((w.advances_deducted for w in self.workers), ZERO))

    @property
    def total_net_paid(self) -> Decimal:
        return round_money(sum((w.net_paid for w in self.workers), ZERO))
