"""
LedgerService -- direct writes to the worker ledger.

Responsibility:
    Record, correct and remove worker ledger entries outside of settlement,
    and serve role-scoped reads of the ledger.

Rules:
    - Developers, Engineers and Supervisors record entries for workers under
      their authority.  Edits and deletes are Developer-only.
    - A ``deduction`` is always a debit; only deductions carry
      ``linked_advance_id``, which must name an advance credit of the same
      worker that no other deduction offsets.  The deduction
      equals the advance, and neither amount can be edited afterwards.
    - ``pending_salary`` accruals are credits that start ``pending``; every
      other entry is recorded ``paid``.  Callers cannot choose the status.
    - An entry that names a fund allocation requires it to be disbursed and,
      for non-Developers, received by the caller.
      When the entry moves cash out (a credit of any category except
      ``pending_salary``) the amount also passes the FundGate.  Edits and
      deletes that increase consumption re-gate the increase.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fund_kernel.db.types import ZERO, positive_money
from fund_kernel.domain.authority import (
    MANAGING_ROLES,
    Actor,
    Role,
    require_authority,
    require_role,
)
from fund_kernel.domain.ledger import (
    EntryStatus,
    EntryType,
    LedgerCategory,
    PaymentMode,
    consumes_funds,
    initial_status,
    parse_category,
    parse_entry_type,
    parse_payment_mode,
)
from fund_kernel.exceptions import (
    AdvanceAlreadyDeductedError,
    ContractNotFoundError,
    ForbiddenError,
    InvalidLedgerEntryError,
    LedgerEntryNotFoundError,
)
from fund_kernel.logging_config import get_logger
from fund_kernel.models.contract import Contract
from fund_kernel.models.worker_ledger import WorkerLedgerEntry
from fund_kernel.selectors.hierarchy_selector import HierarchySelector
from fund_kernel.selectors.ledger_selector import (
    LedgerEntryInfo,
    LedgerSelector,
    WorkerBalance,
    entry_to_info,
)
from fund_kernel.services.base import BaseService
from fund_kernel.services.fund_gate import FundGate

logger = get_logger("services.ledger")

DEVELOPER_ONLY = frozenset({Role.DEVELOPER})


def _consumption(entry_type: str, category: str, amount: Decimal) -> Decimal:
    """Amount an entry draws from its allocation (negative returns funds)."""
    if not consumes_funds(LedgerCategory(category)):
        return ZERO
    return amount if entry_type == EntryType.CREDIT.value else -amount


class LedgerService(BaseService[WorkerLedgerEntry]):
    """Worker ledger writes and role-scoped reads."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._gate = FundGate(session, self.clock)
        self._hierarchy = HierarchySelector(session)
        self._ledger = LedgerSelector(session)

    def _get_in_org(self, entry_id: UUID, organization_id: UUID) -> WorkerLedgerEntry:
        entry = self.session.get(WorkerLedgerEntry, entry_id)
        if entry is None or entry.organization_id != organization_id:
            raise LedgerEntryNotFoundError(str(entry_id))
        return entry

    def _check_linked_advance(
        self,
        advance_id: UUID,
        worker_id: UUID,
        organization_id: UUID,
        amount: Decimal,
    ) -> None:
        advance = self._get_in_org(advance_id, organization_id)
        if (
            advance.worker_id != worker_id
            or advance.category != LedgerCategory.ADVANCE.value
            or advance.entry_type != EntryType.CREDIT.value
        ):
            raise InvalidLedgerEntryError(
                "linked advance must be an advance credit of the same worker"
            )
        if amount != advance.amount:
            raise InvalidLedgerEntryError(
                f"deduction must equal the advance it offsets ({advance.amount})"
            )
        existing = self._ledger.deduction_for_advance(advance_id)
        if existing is not None:
            raise AdvanceAlreadyDeductedError(str(advance_id), str(existing))

    def _require_unlinked(self, entry: WorkerLedgerEntry) -> None:
        """A deduction and the advance it offsets keep equal amounts."""
        if entry.linked_advance_id is not None:
            raise InvalidLedgerEntryError(
                "the amount of a deduction that offsets an advance cannot change"
            )
        deduction_id = self._ledger.deduction_for_advance(entry.id)
        if deduction_id is not None:
            raise AdvanceAlreadyDeductedError(str(entry.id), str(deduction_id))

    def _check_contract(self, contract_id: UUID, worker_id: UUID, organization_id: UUID) -> None:
        contract = self.session.get(Contract, contract_id)
        if (
            contract is None
            or contract.organization_id != organization_id
            or contract.worker_id != worker_id
        ):
            raise ContractNotFoundError(str(contract_id))

    def record_entry(
        self,
        actor: Actor,
        worker_id: UUID,
        entry_type: EntryType | str,
        category: LedgerCategory | str,
        amount: Decimal | str | int,
        site_id: UUID | None = None,
        fund_allocation_id: UUID | None = None,
        linked_advance_id: UUID | None = None,
        contract_id: UUID | None = None,
        description: str | None = None,
        transaction_date: date | None = None,
        payment_mode: PaymentMode | str | None = None,
        reference_number: str | None = None,
    ) -> LedgerEntryInfo:
        """
        Write one ledger entry.

        Raises:
            ForbiddenError: Caller is a Worker, lacks authority over the worker,
                or names an allocation received by someone else.
            WorkerNotFoundError, SiteNotFoundError, ContractNotFoundError,
            LedgerEntryNotFoundError: Referenced record missing.
            InvalidLedgerEntryError: Fields inconsistent with the category.
            AdvanceAlreadyDeductedError: Advance already offset.
            AllocationNotDisbursedError, InsufficientFundsError: Gate refused.
        """
        require_role(actor, MANAGING_ROLES, "record ledger entries")
        self._hierarchy.get_worker(worker_id, actor.organization_id)
        require_authority(actor, worker_id, "record ledger entries")
        self._hierarchy.require_site(site_id, actor.organization_id)

        kind = parse_entry_type(entry_type)
        cat = parse_category(category)
        value = positive_money(amount)
        mode = parse_payment_mode(payment_mode) if payment_mode is not None else None

        if cat == LedgerCategory.DEDUCTION and kind != EntryType.DEBIT:
            raise InvalidLedgerEntryError("a deduction must be a debit")
        if cat == LedgerCategory.PENDING_SALARY and kind != EntryType.CREDIT:
            raise InvalidLedgerEntryError("pending salary must be a credit")
        if linked_advance_id is not None:
            if cat != LedgerCategory.DEDUCTION:
                raise InvalidLedgerEntryError("only deductions may link an advance")
            self._check_linked_advance(
                linked_advance_id, worker_id, actor.organization_id, value,
            )
        if contract_id is not None:
            self._check_contract(contract_id, worker_id, actor.organization_id)

        entry_status = initial_status(cat)

        if fund_allocation_id is not None:
            self._gate.require_spendable_by(actor, fund_allocation_id)
            consumed = _consumption(kind.value, cat.value, value)
            if consumed > ZERO:
                self._gate.require_allocation_funds(
                    fund_allocation_id, consumed, actor.organization_id,
                )

        tx_date = transaction_date or self.clock.today()
        entry = WorkerLedgerEntry(
            organization_id=actor.organization_id,
            worker_id=worker_id,
            site_id=site_id,
            fund_allocation_id=fund_allocation_id,
            linked_advance_id=linked_advance_id,
            contract_id=contract_id,
            entry_type=kind.value,
            category=cat.value,
            status=entry_status.value,
            amount=value,
            description=description,
            transaction_date=tx_date,
            paid_date=tx_date if entry_status == EntryStatus.PAID else None,
            payment_mode=mode.value if mode else None,
            reference_number=reference_number,
            created_by_id=actor.user_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "ledger_entry_recorded",
            extra={
                "entry_id": str(entry.id),
                "worker_id": str(worker_id),
                "entry_type": kind.value,
                "category": cat.value,
                "amount": str(value),
                "allocation_id": str(fund_allocation_id) if fund_allocation_id else None,
            },
        )
        return entry_to_info(entry)

    def record_pending_salary(
        self,
        actor: Actor,
        worker_id: UUID,
        amount: Decimal | str | int,
        site_id: UUID | None = None,
        work_date: date | None = None,
        description: str | None = None,
    ) -> LedgerEntryInfo:
        """Accrue a day's wage as a pending_salary credit."""
        return self.record_entry(
            actor,
            worker_id,
            EntryType.CREDIT,
            LedgerCategory.PENDING_SALARY,
            amount,
            site_id=site_id,
            description=description or "Salary accrued",
            transaction_date=work_date,
        )

    def update_entry(
        self,
        actor: Actor,
        entry_id: UUID,
        amount: Decimal | str | int | None = None,
        description: str | None = None,
        transaction_date: date | None = None,
        payment_mode: PaymentMode | str | None = None,
        reference_number: str | None = None,
    ) -> LedgerEntryInfo:
        """
        Developer-only correction of an entry.

        Raises:
            ForbiddenError, LedgerEntryNotFoundError, InvalidAmountError,
            InsufficientFundsError.
            InvalidLedgerEntryError: Amount change on a deduction linked to an advance.
            AdvanceAlreadyDeductedError: Amount change on an advance a deduction offsets.
        """
        require_role(actor, DEVELOPER_ONLY, "edit ledger entries")
        entry = self._get_in_org(entry_id, actor.organization_id)

        if amount is not None:
            value = positive_money(amount)
            if value != entry.amount:
                self._require_unlinked(entry)
            if entry.fund_allocation_id is not None:
                delta = (
                    _consumption(entry.entry_type, entry.category, value)
                    - _consumption(entry.entry_type, entry.category, entry.amount)
                )
                if delta > ZERO:
                    self._gate.require_allocation_funds(
                        entry.fund_allocation_id, delta, actor.organization_id,
                    )
            entry.amount = value
        if description is not None:
            entry.description = description
        if transaction_date is not None:
            entry.transaction_date = transaction_date
        if payment_mode is not None:
            entry.payment_mode = parse_payment_mode(payment_mode).value
        if reference_number is not None:
            entry.reference_number = reference_number

        entry.updated_by_id = actor.user_id
        self.session.flush()
        logger.info(
            "ledger_entry_updated",
            extra={"entry_id": str(entry_id), "amount": str(entry.amount)},
        )
        return entry_to_info(entry)

    def delete_entry(self, actor: Actor, entry_id: UUID) -> None:
        """
        Developer-only removal of an entry.

        Raises:
            ForbiddenError, LedgerEntryNotFoundError.
            AdvanceAlreadyDeductedError: Entry is an advance a deduction offsets.
            InsufficientFundsError: Removing a funded debit would overdraw.
        """
        require_role(actor, DEVELOPER_ONLY, "delete ledger entries")
        entry = self._get_in_org(entry_id, actor.organization_id)

        deduction_id = self._ledger.deduction_for_advance(entry.id)
        if deduction_id is not None:
            raise AdvanceAlreadyDeductedError(str(entry.id), str(deduction_id))

        if entry.fund_allocation_id is not None:
            delta = -_consumption(entry.entry_type, entry.category, entry.amount)
            if delta > ZERO:
                self._gate.require_allocation_funds(
                    entry.fund_allocation_id, delta, actor.organization_id,
                )

        self.session.delete(entry)
        self.session.flush()
        logger.warning(
            "ledger_entry_deleted",
            extra={
                "entry_id": str(entry_id),
                "worker_id": str(entry.worker_id),
                "category": entry.category,
                "amount": str(entry.amount),
            },
        )

    def worker_balance(self, actor: Actor, worker_id: UUID) -> WorkerBalance:
        self._hierarchy.get_worker(worker_id, actor.organization_id)
        require_authority(actor, worker_id, "view worker balance")
        return self._ledger.worker_balance(worker_id, actor.organization_id)

    def list_entries(
        self,
        actor: Actor,
        worker_id: UUID | None = None,
        site_id: UUID | None = None,
        entry_type: EntryType | str | None = None,
        category: LedgerCategory | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntryInfo]:
        """
        Workers see their own entries, Engineers and Supervisors those of
        their subordinates, Developers the whole organization.
        """
        if worker_id is not None:
            if actor.role == Role.WORKER and worker_id != actor.user_id:
                raise ForbiddenError(
                    str(actor.user_id), "workers can only view their own ledger",
                )
            require_authority(actor, worker_id, "view ledger entries")
            worker_ids: frozenset[UUID] | None = frozenset({worker_id})
        elif actor.is_developer:
            worker_ids = None
        elif actor.role == Role.WORKER:
            worker_ids = frozenset({actor.user_id})
        else:
            worker_ids = actor.subordinate_ids

        return self._ledger.list_entries(
            actor.organization_id,
            worker_ids=worker_ids,
            site_id=site_id,
            entry_type=parse_entry_type(entry_type) if entry_type is not None else None,
            category=parse_category(category) if category is not None else None,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        )
