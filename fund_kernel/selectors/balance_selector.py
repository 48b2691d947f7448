"""
Module: fund_kernel.selectors.balance_selector
Responsibility: Balance reconciliation.  Derives a user's wallet balance and
    an allocation's remaining balance from the transfer stream and the
    independent consumption streams (expenses, bills, ledger entries,
    sub-allocations), and answers "can this allocation cover this amount?".
Architecture position: Kernel > Selectors.  Read-only; FundGate
    (services/fund_gate.py) wraps these reads in a row lock for writers.

Formulas
--------
Wallet of user U::

    received = sum(disbursed allocations to U, from someone else)
    spent    = expenses(charged to U, not rejected)
             + bills(charged to U, credited or paid)
             + funded ledger credits(charged to U) - funded ledger debits(charged to U)
             + sub-allocations(disbursed, charged to U, to someone else)
    balance  = received - spent

A record drawn on an allocation is charged to that allocation's recipient,
whoever wrote it.  A record with no allocation (an unfunded bill, a
sub-allocation without a source) is charged to its creator.  Hence, for a
user whose spending all names a received allocation::

    balance(U) = sum(remaining(A) for A disbursed to U from someone else)

Allocation A::

    utilized  = expenses(A, not rejected)
              + bills(A, credited or paid)
              + ledger credits(A) - ledger debits(A)
              + sub-allocations(disbursed, source A)
    remaining = amount(A) - utilized

"Funded" ledger entries reference an allocation and are not
``pending_salary`` accruals.  Self-allocations (from U to U) are left out of
both wallet terms, so moving money to oneself never changes the wallet; a
spend drawn from a self-allocation still reduces that allocation's own
remaining balance.  Pending, approved and rejected allocations contribute
zero everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import aliased

from fund_kernel.db.types import ZERO, to_money
from fund_kernel.domain.allocation import AllocationStatus
from fund_kernel.domain.ledger import EntryType, LedgerCategory
from fund_kernel.domain.spend import BILL_CONSUMING, ExpenseStatus
from fund_kernel.exceptions import AllocationNotFoundError, InvalidAmountError
from fund_kernel.models.fund_allocation import FundAllocation
from fund_kernel.models.spend import Bill, Expense
from fund_kernel.models.worker_ledger import WorkerLedgerEntry
from fund_kernel.selectors.base import BaseSelector

EXPENSE_NON_CONSUMING_STATUSES = (ExpenseStatus.REJECTED.value,)
BILL_CONSUMING_STATUSES = tuple(sorted(s.value for s in BILL_CONSUMING))


def _charged_to(user_id, source, allocation_column, spender_column):
    """
    Consumption drawn on an allocation is charged to its recipient; an
    unfunded record is charged to whoever made it.
    """
    return or_(
        source.to_user_id == user_id,
        and_(allocation_column.is_(None), spender_column == user_id),
    )


@dataclass(frozen=True)
class SpendBreakdown:
    """Per-source consumption totals."""

    expenses: Decimal = ZERO
    bills: Decimal = ZERO
    ledger_net: Decimal = ZERO
    sub_allocations: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.expenses + self.bills + self.ledger_net + self.sub_allocations


@dataclass(frozen=True)
class WalletBalance:
    user_id: UUID
    organization_id: UUID
    received: Decimal
    breakdown: SpendBreakdown

    @property
    def spent(self) -> Decimal:
        return self.breakdown.total

    @property
    def balance(self) -> Decimal:
        return self.received - self.spent


@dataclass(frozen=True)
class AllocationBalance:
    allocation_id: UUID
    status: AllocationStatus
    allocated: Decimal
    breakdown: SpendBreakdown

    @property
    def utilized(self) -> Decimal:
        return self.breakdown.total

    @property
    def remaining(self) -> Decimal:
        return self.allocated - self.utilized


@dataclass(frozen=True)
class AvailabilityCheck:
    """
    Outcome of an availability check.  Fails closed: ``available`` is True
    only for an existing, disbursed allocation whose remaining balance
    covers the request.
    """

    OK = "OK"
    ALLOCATION_NOT_FOUND = "ALLOCATION_NOT_FOUND"
    ALLOCATION_NOT_DISBURSED = "ALLOCATION_NOT_DISBURSED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

    allocation_id: UUID
    requested: Decimal
    available: bool
    balance: Decimal
    code: str
    message: str


class BalanceSelector(BaseSelector[FundAllocation]):
    """Derived wallet and allocation balances."""

    def _scalar_money(self, stmt) -> Decimal:
        return to_money(self.session.execute(stmt).scalar())

    def _ledger_net(self, *criteria, source=None) -> Decimal:
        signed = case(
            (WorkerLedgerEntry.entry_type == EntryType.DEBIT.value, -WorkerLedgerEntry.amount),
            else_=WorkerLedgerEntry.amount,
        )
        stmt = select(func.coalesce(func.sum(signed), 0)).select_from(WorkerLedgerEntry)
        if source is not None:
            stmt = stmt.join(source, WorkerLedgerEntry.fund_allocation_id == source.id)
        stmt = stmt.where(
            WorkerLedgerEntry.fund_allocation_id.is_not(None),
            WorkerLedgerEntry.category != LedgerCategory.PENDING_SALARY.value,
            *criteria,
        )
        return self._scalar_money(stmt)

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    def wallet_balance(self, user_id: UUID, organization_id: UUID) -> WalletBalance:
        disbursed = AllocationStatus.DISBURSED.value
        Source = aliased(FundAllocation)

        received = self._scalar_money(
            select(func.coalesce(func.sum(FundAllocation.amount), 0)).where(
                FundAllocation.organization_id == organization_id,
                FundAllocation.to_user_id == user_id,
                FundAllocation.from_user_id != user_id,
                FundAllocation.status == disbursed,
            )
        )
        expenses = self._scalar_money(
            select(func.coalesce(func.sum(Expense.amount), 0))
            .select_from(Expense)
            .outerjoin(Source, Expense.fund_allocation_id == Source.id)
            .where(
                Expense.organization_id == organization_id,
                Expense.status.not_in(EXPENSE_NON_CONSUMING_STATUSES),
                _charged_to(user_id, Source, Expense.fund_allocation_id, Expense.user_id),
            )
        )
        bills = self._scalar_money(
            select(func.coalesce(func.sum(Bill.total_amount), 0))
            .select_from(Bill)
            .outerjoin(Source, Bill.fund_allocation_id == Source.id)
            .where(
                Bill.organization_id == organization_id,
                Bill.status.in_(BILL_CONSUMING_STATUSES),
                _charged_to(user_id, Source, Bill.fund_allocation_id, Bill.created_by_id),
            )
        )
        ledger_net = self._ledger_net(
            WorkerLedgerEntry.organization_id == organization_id,
            Source.to_user_id == user_id,
            source=Source,
        )
        sub_allocations = self._scalar_money(
            select(func.coalesce(func.sum(FundAllocation.amount), 0))
            .select_from(FundAllocation)
            .outerjoin(Source, FundAllocation.source_allocation_id == Source.id)
            .where(
                FundAllocation.organization_id == organization_id,
                FundAllocation.to_user_id != user_id,
                FundAllocation.status == disbursed,
                _charged_to(
                    user_id, Source,
                    FundAllocation.source_allocation_id, FundAllocation.from_user_id,
                ),
            )
        )

        return WalletBalance(
            user_id=user_id,
            organization_id=organization_id,
            received=received,
            breakdown=SpendBreakdown(
                expenses=expenses,
                bills=bills,
                ledger_net=ledger_net,
                sub_allocations=sub_allocations,
            ),
        )

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def _allocation_breakdown(self, allocation_id: UUID) -> SpendBreakdown:
        expenses = self._scalar_money(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.fund_allocation_id == allocation_id,
                Expense.status.not_in(EXPENSE_NON_CONSUMING_STATUSES),
            )
        )
        bills = self._scalar_money(
            select(func.coalesce(func.sum(Bill.total_amount), 0)).where(
                Bill.fund_allocation_id == allocation_id,
                Bill.status.in_(BILL_CONSUMING_STATUSES),
            )
        )
        ledger_net = self._ledger_net(
            WorkerLedgerEntry.fund_allocation_id == allocation_id,
        )
        sub_allocations = self._scalar_money(
            select(func.coalesce(func.sum(FundAllocation.amount), 0)).where(
                FundAllocation.source_allocation_id == allocation_id,
                FundAllocation.status == AllocationStatus.DISBURSED.value,
            )
        )
        return SpendBreakdown(
            expenses=expenses,
            bills=bills,
            ledger_net=ledger_net,
            sub_allocations=sub_allocations,
        )

    def allocation_balance(self, allocation_id: UUID) -> AllocationBalance:
        """
        Raises:
            AllocationNotFoundError: If the allocation does not exist.
        """
        allocation = self.session.get(FundAllocation, allocation_id)
        if allocation is None:
            raise AllocationNotFoundError(str(allocation_id))
        return AllocationBalance(
            allocation_id=allocation.id,
            status=AllocationStatus(allocation.status),
            allocated=to_money(allocation.amount),
            breakdown=self._allocation_breakdown(allocation.id),
        )

    def validate_availability(
        self,
        allocation_id: UUID,
        requested_amount: Decimal,
        organization_id: UUID | None = None,
    ) -> AvailabilityCheck:
        """
        Check whether an allocation can cover ``requested_amount``.

        Never raises for a missing or unusable allocation; the reason is
        reported through ``code``.  A zero request passes for any disbursed
        allocation.

        Raises:
            InvalidAmountError: If ``requested_amount`` is negative.
        """
        requested = to_money(requested_amount)
        if requested < ZERO:
            raise InvalidAmountError(requested_amount, "amount must not be negative")

        allocation = self.session.get(FundAllocation, allocation_id)
        if allocation is None or (
            organization_id is not None and allocation.organization_id != organization_id
        ):
            return AvailabilityCheck(
                allocation_id=allocation_id,
                requested=requested,
                available=False,
                balance=ZERO,
                code=AvailabilityCheck.ALLOCATION_NOT_FOUND,
                message="Fund allocation not found",
            )

        if allocation.status != AllocationStatus.DISBURSED.value:
            return AvailabilityCheck(
                allocation_id=allocation_id,
                requested=requested,
                available=False,
                balance=ZERO,
                code=AvailabilityCheck.ALLOCATION_NOT_DISBURSED,
                message=(
                    f"Fund allocation is {allocation.status}; "
                    "only disbursed funds can be used"
                ),
            )

        remaining = to_money(allocation.amount) - self._allocation_breakdown(allocation.id).total
        if requested > remaining:
            return AvailabilityCheck(
                allocation_id=allocation_id,
                requested=requested,
                available=False,
                balance=remaining,
                code=AvailabilityCheck.INSUFFICIENT_FUNDS,
                message=(
                    f"Insufficient funds. Available: {remaining}, "
                    f"Requested: {requested}"
                ),
            )

        return AvailabilityCheck(
            allocation_id=allocation_id,
            requested=requested,
            available=True,
            balance=remaining,
            code=AvailabilityCheck.OK,
            message="Funds available",
        )
