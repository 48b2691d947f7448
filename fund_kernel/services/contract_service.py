"""
ContractService -- fixed-price worker contracts and their payments.

Responsibility:
    Create contracts, drive their status, and pay installments.  A payment
    is a ``credit``/``contract_payment`` ledger entry written through
    LedgerService, so it passes the same authority checks and FundGate as
    any other funded credit.  ``total_paid`` is updated in the same unit of
    work; a contract paid in full is completed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from fund_kernel.db.types import positive_money, to_money
from fund_kernel.domain.authority import (
    MANAGING_ROLES,
    Actor,
    require_authority,
    require_role,
)
from fund_kernel.domain.contract import ContractStatus, next_contract_status
from fund_kernel.domain.ledger import EntryType, LedgerCategory, PaymentMode
from fund_kernel.exceptions import (
    ContractNotActiveError,
    ContractNotFoundError,
    InvalidAmountError,
)
from fund_kernel.logging_config import get_logger
from fund_kernel.models.contract import Contract
from fund_kernel.selectors.hierarchy_selector import HierarchySelector
from fund_kernel.selectors.ledger_selector import LedgerEntryInfo
from fund_kernel.services.base import BaseService
from fund_kernel.services.fund_gate import FundGate
from fund_kernel.services.ledger_service import LedgerService

logger = get_logger("services.contract")


@dataclass(frozen=True)
class ContractInfo:
    id: UUID
    organization_id: UUID
    worker_id: UUID
    site_id: UUID | None
    fund_allocation_id: UUID | None
    title: str
    total_amount: Decimal
    total_paid: Decimal
    status: ContractStatus
    start_date: date
    end_date: date | None

    @property
    def remaining_amount(self) -> Decimal:
        return self.total_amount - self.total_paid


@dataclass(frozen=True)
class ContractPayment:
    """A contract payment: the updated contract and the ledger credit written."""

    contract: ContractInfo
    entry: LedgerEntryInfo


class ContractService(BaseService[Contract]):
    """Contract writes."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._gate = FundGate(session, self.clock)
        self._hierarchy = HierarchySelector(session)
        self._ledger = LedgerService(session, self.clock)

    def _to_dto(self, contract: Contract) -> ContractInfo:
        return ContractInfo(
            id=contract.id,
            organization_id=contract.organization_id,
            worker_id=contract.worker_id,
            site_id=contract.site_id,
            fund_allocation_id=contract.fund_allocation_id,
            title=contract.title,
            total_amount=to_money(contract.total_amount),
            total_paid=to_money(contract.total_paid),
            status=ContractStatus(contract.status),
            start_date=contract.start_date,
            end_date=contract.end_date,
        )

    def _get_in_org(self, contract_id: UUID, organization_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id)
        if contract is None or contract.organization_id != organization_id:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def get(self, actor: Actor, contract_id: UUID) -> ContractInfo:
        return self._to_dto(self._get_in_org(contract_id, actor.organization_id))

    def create_contract(
        self,
        actor: Actor,
        worker_id: UUID,
        title: str,
        total_amount: Decimal | str | int,
        site_id: UUID | None = None,
        fund_allocation_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        description: str | None = None,
    ) -> ContractInfo:
        """
        Create a contract in ``draft``.

        Raises:
            ForbiddenError, WorkerNotFoundError, SiteNotFoundError,
            AllocationNotFoundError, AllocationNotDisbursedError,
            InvalidAmountError.
        """
        require_role(actor, MANAGING_ROLES, "create contracts")
        self._hierarchy.get_worker(worker_id, actor.organization_id)
        require_authority(actor, worker_id, "create contracts")
        self._hierarchy.require_site(site_id, actor.organization_id)
        total = positive_money(total_amount)
        if fund_allocation_id is not None:
            self._gate.require_spendable_by(actor, fund_allocation_id)

        contract = Contract(
            organization_id=actor.organization_id,
            worker_id=worker_id,
            site_id=site_id,
            fund_allocation_id=fund_allocation_id,
            title=title,
            description=description,
            total_amount=total,
            total_paid=to_money(0),
            status=ContractStatus.DRAFT.value,
            start_date=start_date or self.clock.today(),
            end_date=end_date,
            created_by_id=actor.user_id,
        )
        self.session.add(contract)
        self.session.flush()
        logger.info(
            "contract_created",
            extra={
                "contract_id": str(contract.id),
                "worker_id": str(worker_id),
                "total_amount": str(total),
            },
        )
        return self._to_dto(contract)

    def set_contract_status(
        self,
        actor: Actor,
        contract_id: UUID,
        status: ContractStatus | str,
    ) -> ContractInfo:
        """
        Raises:
            ForbiddenError, ContractNotFoundError, InvalidStatusError.
        """
        require_role(actor, MANAGING_ROLES, "change contract status")
        contract = self._get_in_org(contract_id, actor.organization_id)
        require_authority(actor, contract.worker_id, "change contract status")
        target = next_contract_status(contract.status, status)

        previous = contract.status
        contract.status = target.value
        contract.updated_by_id = actor.user_id
        self.session.flush()
        logger.info(
            "contract_status_changed",
            extra={
                "contract_id": str(contract_id),
                "from_status": previous,
                "to_status": target.value,
            },
        )
        return self._to_dto(contract)

    def activate_contract(self, actor: Actor, contract_id: UUID) -> ContractInfo:
        return self.set_contract_status(actor, contract_id, ContractStatus.ACTIVE)

    def record_contract_payment(
        self,
        actor: Actor,
        contract_id: UUID,
        amount: Decimal | str | int,
        fund_allocation_id: UUID | None = None,
        payment_mode: PaymentMode | str | None = None,
        reference_number: str | None = None,
        payment_date: date | None = None,
    ) -> ContractPayment:
        """
        Pay part of a contract.  Draws on ``fund_allocation_id`` or, when not
        given, on the contract's own allocation.

        Raises:
            ContractNotFoundError: Contract missing.
            ContractNotActiveError: Contract is not active.
            InvalidAmountError: Non-positive, or more than what remains.
            ForbiddenError, AllocationNotDisbursedError,
            InsufficientFundsError: From the ledger write.
        """
        contract = self._get_in_org(contract_id, actor.organization_id)
        if contract.status != ContractStatus.ACTIVE.value:
            raise ContractNotActiveError(str(contract_id), contract.status)

        value = positive_money(amount)
        remaining = to_money(contract.total_amount) - to_money(contract.total_paid)
        if value > remaining:
            raise InvalidAmountError(
                value, f"exceeds remaining contract amount {remaining}",
            )

        entry = self._ledger.record_entry(
            actor,
            contract.worker_id,
            EntryType.CREDIT,
            LedgerCategory.CONTRACT_PAYMENT,
            value,
            site_id=contract.site_id,
            fund_allocation_id=fund_allocation_id or contract.fund_allocation_id,
            contract_id=contract.id,
            description=f"Contract payment: {contract.title}",
            transaction_date=payment_date,
            payment_mode=payment_mode,
            reference_number=reference_number,
        )

        contract.total_paid = to_money(contract.total_paid) + value
        if contract.total_paid >= to_money(contract.total_amount):
            contract.status = ContractStatus.COMPLETED.value
        contract.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "contract_payment_recorded",
            extra={
                "contract_id": str(contract_id),
                "entry_id": str(entry.id),
                "amount": str(value),
                "total_paid": str(contract.total_paid),
                "status": contract.status,
            },
        )
        return ContractPayment(contract=self._to_dto(contract), entry=entry)
