"""
SpendService -- expenses and vendor bills drawn on fund allocations.

Responsibility:
    Create expenses and bills and drive their status, passing every change
    that starts (or increases) consumption of an allocation through the
    FundGate first.

Rules:
    - An expense requires a fund allocation and consumes it on creation.
      Developer expenses start ``approved``; everyone else's start
      ``pending``.  Status changes are Developer-only; approving with a
      larger amount re-gates the increase.
    - A bill may name an allocation; it must be disbursed at creation but is
      only gated when the bill moves to ``credited`` or ``paid``.
    - Outside the Developer role, only the recipient of an allocation may
      spend from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from fund_kernel.db.types import ZERO, positive_money, to_money
from fund_kernel.domain.authority import MANAGING_ROLES, Actor, Role, require_role
from fund_kernel.domain.spend import (
    BillStatus,
    BillType,
    ExpenseStatus,
    bill_consumes,
    expense_consumes,
    next_bill_status,
    next_expense_status,
    parse_bill_type,
)
from fund_kernel.exceptions import (
    BillNotFoundError,
    ExpenseNotFoundError,
    ForbiddenError,
    InvalidAmountError,
)
from fund_kernel.logging_config import get_logger
from fund_kernel.models.spend import Bill, Expense
from fund_kernel.selectors.hierarchy_selector import HierarchySelector
from fund_kernel.services.base import BaseService
from fund_kernel.services.fund_gate import FundGate

logger = get_logger("services.spend")


@dataclass(frozen=True)
class ExpenseInfo:
    id: UUID
    organization_id: UUID
    user_id: UUID
    site_id: UUID | None
    fund_allocation_id: UUID | None
    category: str
    amount: Decimal
    status: ExpenseStatus
    description: str | None
    vendor_name: str | None
    expense_date: date
    approved_by_id: UUID | None
    approved_at: datetime | None

    @property
    def consumes_funds(self) -> bool:
        return expense_consumes(self.status)


@dataclass(frozen=True)
class BillInfo:
    id: UUID
    organization_id: UUID
    site_id: UUID | None
    fund_allocation_id: UUID | None
    vendor_name: str
    vendor_gst_number: str | None
    invoice_number: str | None
    bill_type: BillType
    base_amount: Decimal
    gst_amount: Decimal
    total_amount: Decimal
    status: BillStatus
    bill_date: date
    credited_date: date | None
    paid_date: date | None
    created_by_id: UUID

    @property
    def consumes_funds(self) -> bool:
        return bill_consumes(self.status)


class SpendService(BaseService[Expense]):
    """Expense and bill writes."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._gate = FundGate(session, self.clock)
        self._hierarchy = HierarchySelector(session)

    def _expense_dto(self, expense: Expense) -> ExpenseInfo:
        return ExpenseInfo(
            id=expense.id,
            organization_id=expense.organization_id,
            user_id=expense.user_id,
            site_id=expense.site_id,
            fund_allocation_id=expense.fund_allocation_id,
            category=expense.category,
            amount=to_money(expense.amount),
            status=ExpenseStatus(expense.status),
            description=expense.description,
            vendor_name=expense.vendor_name,
            expense_date=expense.expense_date,
            approved_by_id=expense.approved_by_id,
            approved_at=expense.approved_at,
        )

    def _bill_dto(self, bill: Bill) -> BillInfo:
        return BillInfo(
            id=bill.id,
            organization_id=bill.organization_id,
            site_id=bill.site_id,
            fund_allocation_id=bill.fund_allocation_id,
            vendor_name=bill.vendor_name,
            vendor_gst_number=bill.vendor_gst_number,
            invoice_number=bill.invoice_number,
            bill_type=BillType(bill.bill_type),
            base_amount=to_money(bill.base_amount),
            gst_amount=to_money(bill.gst_amount),
            total_amount=to_money(bill.total_amount),
            status=BillStatus(bill.status),
            bill_date=bill.bill_date,
            credited_date=bill.credited_date,
            paid_date=bill.paid_date,
            created_by_id=bill.created_by_id,
        )

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def _get_expense(self, expense_id: UUID, organization_id: UUID) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if expense is None or expense.organization_id != organization_id:
            raise ExpenseNotFoundError(str(expense_id))
        return expense

    def create_expense(
        self,
        actor: Actor,
        amount: Decimal | str | int,
        fund_allocation_id: UUID,
        site_id: UUID | None = None,
        category: str = "other",
        description: str | None = None,
        vendor_name: str | None = None,
        expense_date: date | None = None,
    ) -> ExpenseInfo:
        """
        Record an expense against an allocation.

        Raises:
            SiteNotFoundError, AllocationNotFoundError, ForbiddenError,
            AllocationNotDisbursedError, InsufficientFundsError,
            InvalidAmountError.
        """
        value = positive_money(amount)
        self._hierarchy.require_site(site_id, actor.organization_id)

        self._gate.require_spendable_by(actor, fund_allocation_id)
        self._gate.require_allocation_funds(fund_allocation_id, value, actor.organization_id)

        approved = actor.is_developer
        expense = Expense(
            organization_id=actor.organization_id,
            site_id=site_id,
            user_id=actor.user_id,
            fund_allocation_id=fund_allocation_id,
            category=category,
            amount=value,
            status=(ExpenseStatus.APPROVED if approved else ExpenseStatus.PENDING).value,
            description=description,
            vendor_name=vendor_name,
            expense_date=expense_date or self.clock.today(),
            approved_by_id=actor.user_id if approved else None,
            approved_at=self.clock.now() if approved else None,
            created_by_id=actor.user_id,
        )
        self.session.add(expense)
        self.session.flush()
        logger.info(
            "expense_created",
            extra={
                "expense_id": str(expense.id),
                "allocation_id": str(fund_allocation_id),
                "amount": str(value),
                "status": expense.status,
            },
        )
        return self._expense_dto(expense)

    def set_expense_status(
        self,
        actor: Actor,
        expense_id: UUID,
        status: ExpenseStatus | str,
        amount: Decimal | str | int | None = None,
    ) -> ExpenseInfo:
        """
        Developer-only status change.  ``amount`` may adjust the expense
        while approving it.

        Raises:
            ForbiddenError, ExpenseNotFoundError, InvalidStatusError,
            InvalidAmountError, InsufficientFundsError.
        """
        require_role(actor, frozenset({Role.DEVELOPER}), "change expense status")
        expense = self._get_expense(expense_id, actor.organization_id)
        target = next_expense_status(expense.status, status)

        if amount is not None:
            if target != ExpenseStatus.APPROVED:
                raise InvalidAmountError(amount, "amount can only change on approval")
            value = positive_money(amount)
            delta = value - to_money(expense.amount)
            if delta > ZERO and expense.fund_allocation_id is not None:
                self._gate.require_allocation_funds(
                    expense.fund_allocation_id, delta, actor.organization_id,
                )
            expense.amount = value

        if target == ExpenseStatus.APPROVED:
            expense.approved_by_id = actor.user_id
            expense.approved_at = self.clock.now()
        expense.status = target.value
        expense.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "expense_status_changed",
            extra={
                "expense_id": str(expense_id),
                "status": target.value,
                "consumes": expense_consumes(target),
            },
        )
        return self._expense_dto(expense)

    # ------------------------------------------------------------------
    # Bills
    # ------------------------------------------------------------------

    def _get_bill(self, bill_id: UUID, organization_id: UUID) -> Bill:
        bill = self.session.get(Bill, bill_id)
        if bill is None or bill.organization_id != organization_id:
            raise BillNotFoundError(str(bill_id))
        return bill

    def create_bill(
        self,
        actor: Actor,
        vendor_name: str,
        base_amount: Decimal | str | int,
        gst_amount: Decimal | str | int = ZERO,
        fund_allocation_id: UUID | None = None,
        site_id: UUID | None = None,
        bill_type: BillType | str = BillType.MATERIAL,
        invoice_number: str | None = None,
        vendor_gst_number: str | None = None,
        bill_date: date | None = None,
    ) -> BillInfo:
        """
        Record a vendor bill.  ``total_amount`` is ``base_amount + gst_amount``.

        Raises:
            ForbiddenError, SiteNotFoundError, AllocationNotFoundError,
            AllocationNotDisbursedError, InvalidAmountError.
        """
        require_role(actor, MANAGING_ROLES, "record bills")
        base = positive_money(base_amount)
        gst = to_money(gst_amount)
        if gst < ZERO:
            raise InvalidAmountError(gst_amount, "GST amount must not be negative")
        kind = parse_bill_type(bill_type)
        self._hierarchy.require_site(site_id, actor.organization_id)

        if fund_allocation_id is not None:
            self._gate.require_spendable_by(actor, fund_allocation_id)

        bill = Bill(
            organization_id=actor.organization_id,
            site_id=site_id,
            fund_allocation_id=fund_allocation_id,
            vendor_name=vendor_name,
            vendor_gst_number=vendor_gst_number,
            invoice_number=invoice_number,
            bill_type=kind.value,
            base_amount=base,
            gst_amount=gst,
            total_amount=base + gst,
            status=BillStatus.PENDING.value,
            bill_date=bill_date or self.clock.today(),
            created_by_id=actor.user_id,
        )
        self.session.add(bill)
        self.session.flush()
        logger.info(
            "bill_created",
            extra={
                "bill_id": str(bill.id),
                "vendor_name": vendor_name,
                "total_amount": str(bill.total_amount),
            },
        )
        return self._bill_dto(bill)

    def set_bill_status(
        self,
        actor: Actor,
        bill_id: UUID,
        status: BillStatus | str,
    ) -> BillInfo:
        """
        Move a bill through its lifecycle.  The Developer or the bill's
        creator may do so.  Crediting or paying a funded bill passes the gate.

        Raises:
            ForbiddenError, BillNotFoundError, InvalidStatusError,
            AllocationNotDisbursedError, InsufficientFundsError.
        """
        bill = self._get_bill(bill_id, actor.organization_id)
        if not actor.is_developer and bill.created_by_id != actor.user_id:
            raise ForbiddenError(
                str(actor.user_id),
                "only the creator or a developer may change a bill",
                target_id=str(bill_id),
            )
        current = BillStatus(bill.status)
        target = next_bill_status(bill.status, status)

        if (
            bill.fund_allocation_id is not None
            and bill_consumes(target)
            and not bill_consumes(current)
        ):
            self._gate.require_allocation_funds(
                bill.fund_allocation_id, bill.total_amount, actor.organization_id,
            )

        today = self.clock.today()
        if target == BillStatus.CREDITED:
            bill.credited_date = today
        elif target == BillStatus.PAID:
            bill.paid_date = today
        bill.status = target.value
        bill.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "bill_status_changed",
            extra={
                "bill_id": str(bill_id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return self._bill_dto(bill)
