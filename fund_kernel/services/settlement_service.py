"""
SettlementService -- salary settlement for one worker or a batch.

Responsibility:
    Turn a worker's accrued ``pending_salary`` entries and unpaid advances
    into a payment drawn on one fund allocation, all-or-nothing.

Sequence (single worker)::

    1. lock allocation row; require it disbursed and received by the
       caller (Developers may pay from any allocation)
    2. require the worker in the organization and under the caller's authority
    3. lock the worker row (one settlement per worker at a time)
    4. plan: pending lines, unpaid advances, net = pending - advances
    5. FundGate: allocation must cover max(net, 0)
    6. apply: pending -> paid (stamped with allocation and paid_date);
       one deduction debit per advance (linked_advance_id);
       one salary credit for net when net > 0

Bulk runs steps 2-4 for each selected worker, silently skipping those
outside the organization, outside the caller's authority, or with nothing
pending, then gates the SUM of per-worker payouts once and applies every
plan.  Nothing is written before the gate passes, so a refused settlement
leaves the session untouched.

Lock order is allocation row, then worker rows in id order, matching the
allocation-then-user order used elsewhere.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from fund_kernel.domain.authority import Actor, require_authority
from fund_kernel.domain.ledger import (
    EntryStatus,
    EntryType,
    LedgerCategory,
    PaymentMode,
    parse_payment_mode,
)
from fund_kernel.domain.settlement import (
    BatchSettlementPlan,
    BulkSettlementSummary,
    SettlementSummary,
    WorkerSettlementPlan,
    plan_worker_settlement,
)
from fund_kernel.exceptions import EmptySelectionError, NoPendingEntriesError
from fund_kernel.logging_config import LogContext, get_logger
from fund_kernel.models.organization import User
from fund_kernel.models.worker_ledger import WorkerLedgerEntry
from fund_kernel.selectors.hierarchy_selector import HierarchySelector
from fund_kernel.selectors.ledger_selector import LedgerSelector
from fund_kernel.services.base import BaseService
from fund_kernel.services.fund_gate import FundGate

logger = get_logger("services.settlement")


class SettlementService(BaseService[WorkerLedgerEntry]):
    """Pay-salary and bulk pay-salary."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._gate = FundGate(session, self.clock)
        self._hierarchy = HierarchySelector(session)
        self._ledger = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _lock_workers(self, worker_ids: list[UUID]) -> None:
        if not worker_ids:
            return
        stmt = (
            select(User.id)
            .where(User.id.in_(worker_ids))
            .order_by(User.id)
            .with_for_update()
        )
        self.session.execute(stmt).all()

    def _plan(
        self,
        worker_id: UUID,
        organization_id: UUID,
        site_id: UUID | None,
        start_date: date | None,
        end_date: date | None,
    ) -> WorkerSettlementPlan:
        pending = self._ledger.pending_salary_lines(
            worker_id, organization_id,
            site_id=site_id, start_date=start_date, end_date=end_date,
        )
        advances = self._ledger.unpaid_advances(worker_id, organization_id)
        return plan_worker_settlement(worker_id, pending, advances)

    def preview(
        self,
        actor: Actor,
        worker_id: UUID,
        site_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> WorkerSettlementPlan:
        """
        What pay_salary would settle right now, without writing anything.

        Raises:
            WorkerNotFoundError, ForbiddenError.
        """
        self._hierarchy.get_worker(worker_id, actor.organization_id)
        require_authority(actor, worker_id, "view pending salary")
        return self._plan(worker_id, actor.organization_id, site_id, start_date, end_date)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def _apply(
        self,
        actor: Actor,
        plan: WorkerSettlementPlan,
        allocation_id: UUID,
        site_id: UUID | None,
        payment_mode: PaymentMode | None,
        reference_number: str | None,
    ) -> SettlementSummary:
        today = self.clock.today()

        for line in plan.pending:
            entry = self.session.get(WorkerLedgerEntry, line.entry_id)
            entry.status = EntryStatus.PAID.value
            entry.fund_allocation_id = allocation_id
            entry.paid_date = today
            entry.updated_by_id = actor.user_id

        deductions = []
        for advance in plan.advances:
            deduction = WorkerLedgerEntry(
                organization_id=actor.organization_id,
                worker_id=plan.worker_id,
                site_id=advance.site_id or site_id,
                linked_advance_id=advance.entry_id,
                entry_type=EntryType.DEBIT.value,
                category=LedgerCategory.DEDUCTION.value,
                status=EntryStatus.PAID.value,
                amount=advance.amount,
                description="Advance deducted from salary",
                transaction_date=today,
                paid_date=today,
                created_by_id=actor.user_id,
            )
            self.session.add(deduction)
            deductions.append(deduction)

        payment = None
        if plan.net_payable > 0:
            payment = WorkerLedgerEntry(
                organization_id=actor.organization_id,
                worker_id=plan.worker_id,
                site_id=site_id,
                fund_allocation_id=allocation_id,
                entry_type=EntryType.CREDIT.value,
                category=LedgerCategory.SALARY.value,
                status=EntryStatus.PAID.value,
                amount=plan.net_payable,
                description=(
                    f"Salary payment for {len(plan.pending)} pending entries"
                ),
                transaction_date=today,
                paid_date=today,
                payment_mode=payment_mode.value if payment_mode else None,
                reference_number=reference_number,
                created_by_id=actor.user_id,
            )
            self.session.add(payment)

        self.session.flush()

        summary = SettlementSummary(
            worker_id=plan.worker_id,
            allocation_id=allocation_id,
            gross_salary=plan.total_pending,
            advances_deducted=plan.total_advances,
            net_payable=plan.net_payable,
            net_paid=plan.payable_amount,
            pending_entries_settled=len(plan.pending),
            advances_settled=len(plan.advances),
            deduction_entry_ids=tuple(d.id for d in deductions),
            payment_entry_id=payment.id if payment is not None else None,
            paid_date=today,
        )
        logger.info(
            "worker_salary_settled",
            extra={
                "worker_id": str(plan.worker_id),
                "allocation_id": str(allocation_id),
                "gross_salary": str(summary.gross_salary),
                "advances_deducted": str(summary.advances_deducted),
                "net_paid": str(summary.net_paid),
                "pending_entries_settled": summary.pending_entries_settled,
            },
        )
        return summary

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def pay_salary(
        self,
        actor: Actor,
        worker_id: UUID,
        allocation_id: UUID,
        site_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        payment_mode: PaymentMode | str | None = None,
        reference_number: str | None = None,
    ) -> SettlementSummary:
        """
        Settle one worker's pending salary against an allocation.

        Raises:
            AllocationNotFoundError: Allocation missing or in another organization.
            AllocationNotDisbursedError: Allocation not disbursed.
            WorkerNotFoundError: Worker not in the organization.
            ForbiddenError: Worker outside the caller's authority, or the
                allocation was received by someone else.
            NoPendingEntriesError: Nothing pending in the requested scope.
            InsufficientFundsError: Allocation cannot cover the net payable.
        """
        mode = parse_payment_mode(payment_mode) if payment_mode is not None else None
        with LogContext.bind(
            actor_id=actor.user_id,
            organization_id=actor.organization_id,
            allocation_id=allocation_id,
            worker_id=worker_id,
        ):
            self._gate.require_spendable_by(actor, allocation_id)
            self._hierarchy.get_worker(worker_id, actor.organization_id)
            require_authority(actor, worker_id, "pay salary")
            self._hierarchy.require_site(site_id, actor.organization_id)
            self._lock_workers([worker_id])

            plan = self._plan(worker_id, actor.organization_id, site_id, start_date, end_date)
            if not plan.has_pending_work:
                raise NoPendingEntriesError(str(worker_id))

            self._gate.require_allocation_funds(
                allocation_id, plan.payable_amount, actor.organization_id,
            )
            return self._apply(actor, plan, allocation_id, site_id, mode, reference_number)

    def bulk_pay_salary(
        self,
        actor: Actor,
        worker_ids: list[UUID] | tuple[UUID, ...],
        allocation_id: UUID,
        site_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        payment_mode: PaymentMode | str | None = None,
        reference_number: str | None = None,
    ) -> BulkSettlementSummary:
        """
        Settle several workers against one allocation, all-or-nothing.

        Raises:
            EmptySelectionError: No ids given, or no selected worker is eligible.
            AllocationNotFoundError, AllocationNotDisbursedError.
            ForbiddenError: Allocation was received by someone else.
            InsufficientFundsError: Allocation cannot cover the batch total.
        """
        requested = list(dict.fromkeys(worker_ids))
        if not requested:
            raise EmptySelectionError(0)
        mode = parse_payment_mode(payment_mode) if payment_mode is not None else None

        with LogContext.bind(
            actor_id=actor.user_id,
            organization_id=actor.organization_id,
            allocation_id=allocation_id,
        ):
            self._gate.require_spendable_by(actor, allocation_id)
            self._hierarchy.require_site(site_id, actor.organization_id)

            candidates = [
                wid for wid in requested
                if actor.has_authority_over(wid)
                and self._hierarchy.find_user_in_org(wid, actor.organization_id) is not None
            ]
            self._lock_workers(candidates)

            plans = []
            for wid in candidates:
                plan = self._plan(wid, actor.organization_id, site_id, start_date, end_date)
                if plan.has_pending_work:
                    plans.append(plan)
            skipped = len(requested) - len(plans)

            if not plans:
                raise EmptySelectionError(len(requested))

            batch = BatchSettlementPlan(plans=tuple(plans))
            self._gate.require_allocation_funds(
                allocation_id, batch.required_amount, actor.organization_id,
            )

            summaries = tuple(
                self._apply(actor, plan, allocation_id, site_id, mode, reference_number)
                for plan in plans
            )
            result = BulkSettlementSummary(
                allocation_id=allocation_id,
                requested_count=len(requested),
                workers=summaries,
            )
            logger.info(
                "bulk_salary_settled",
                extra={
                    "workers_processed": result.workers_processed,
                    "workers_skipped": skipped,
                    "total_gross": str(result.total_gross),
                    "total_advances": str(result.total_advances),
                    "total_net_paid": str(result.total_net_paid),
                },
            )
            return result
