"""
AllocationService -- fund allocation lifecycle.

Responsibility:
    Create, transition, update and delete fund allocations, and expose the
    derived balances callers need alongside them.  Returns AllocationInfo
    DTOs, never ORM rows.

Rules:
    - Developers create allocations already disbursed; Engineers and
      Supervisors create pending allocations, to themselves or their
      subordinates only, covered by their wallet.  Workers cannot allocate.
    - A sub-allocation may draw on a ``source_allocation`` the creator
      received; the source must be disbursed and cover the amount.
    - Moving a non-Developer allocation to disbursed re-checks the creator's
      wallet (and the source allocation) under lock, since that is when the
      money leaves.
    - Amount is immutable once disbursed.
    - Deletion is Developer-only and refused while anything references the
      allocation as its funding source.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fund_kernel.db.types import positive_money
from fund_kernel.domain.allocation import (
    AllocationPurpose,
    AllocationStatus,
    check_transition_authority,
    initial_status_for,
    is_transition_allowed,
    parse_purpose,
    parse_target_status,
)
from fund_kernel.domain.authority import (
    MANAGING_ROLES,
    Actor,
    Role,
    require_authority,
    require_role,
)
from fund_kernel.exceptions import (
    AllocationImmutableError,
    AllocationInUseError,
    AllocationNotFoundError,
    ForbiddenError,
    InvalidAllocationTransitionError,
    UserNotFoundError,
)
from fund_kernel.logging_config import LogContext, get_logger
from fund_kernel.models.fund_allocation import FundAllocation
from fund_kernel.selectors.allocation_selector import (
    AllocationInfo,
    AllocationSelector,
    FlowSummary,
    allocation_to_info,
)
from fund_kernel.selectors.balance_selector import (
    AllocationBalance,
    AvailabilityCheck,
    BalanceSelector,
    WalletBalance,
)
from fund_kernel.selectors.hierarchy_selector import HierarchySelector
from fund_kernel.services.base import BaseService
from fund_kernel.services.fund_gate import FundGate

logger = get_logger("services.allocation")


class AllocationService(BaseService[FundAllocation]):
    """Fund allocation writes plus balance reads scoped by the caller's authority."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._gate = FundGate(session, self.clock)
        self._hierarchy = HierarchySelector(session)
        self._allocations = AllocationSelector(session)
        self._balances = BalanceSelector(session)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _creator_is_developer(self, allocation: FundAllocation) -> bool:
        creator = self._hierarchy.get_user(allocation.from_user_id)
        return creator.role == Role.DEVELOPER

    def _check_source(
        self,
        actor: Actor,
        source_allocation_id: UUID,
        amount: Decimal,
    ) -> None:
        self._gate.require_spendable_by(actor, source_allocation_id)
        self._gate.require_allocation_funds(
            source_allocation_id, amount, actor.organization_id,
        )

    def _get_in_org(self, allocation_id: UUID, organization_id: UUID) -> FundAllocation:
        allocation = self.session.get(FundAllocation, allocation_id)
        if allocation is None or allocation.organization_id != organization_id:
            raise AllocationNotFoundError(str(allocation_id))
        return allocation

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_allocation(
        self,
        actor: Actor,
        to_user_id: UUID,
        amount: Decimal | str | int,
        purpose: AllocationPurpose | str = AllocationPurpose.SITE_EXPENSE,
        site_id: UUID | None = None,
        source_allocation_id: UUID | None = None,
        description: str | None = None,
        reference_number: str | None = None,
        allocation_date: date | None = None,
    ) -> AllocationInfo:
        """
        Transfer ``amount`` from the actor to ``to_user_id``.

        Raises:
            ForbiddenError: Worker caller, or recipient outside the hierarchy.
            UserNotFoundError: Recipient not in the organization.
            SiteNotFoundError: Site not in the organization.
            InvalidAmountError: Amount not positive.
            InsufficientFundsError: Wallet or source allocation too small.
        """
        require_role(actor, MANAGING_ROLES, "allocate funds")
        value = positive_money(amount)
        purpose = parse_purpose(purpose)

        if self._hierarchy.find_user_in_org(to_user_id, actor.organization_id) is None:
            raise UserNotFoundError(str(to_user_id))
        require_authority(actor, to_user_id, "allocate funds")
        self._hierarchy.require_site(site_id, actor.organization_id)

        if source_allocation_id is not None:
            self._check_source(actor, source_allocation_id, value)
        if not actor.is_developer:
            self._gate.require_wallet_funds(actor.user_id, actor.organization_id, value)

        status = initial_status_for(actor)
        allocation = FundAllocation(
            organization_id=actor.organization_id,
            from_user_id=actor.user_id,
            to_user_id=to_user_id,
            site_id=site_id,
            source_allocation_id=source_allocation_id,
            amount=value,
            purpose=purpose.value,
            description=description,
            status=status.value,
            allocation_date=allocation_date or self.clock.today(),
            disbursed_at=self.clock.now() if status == AllocationStatus.DISBURSED else None,
            reference_number=reference_number,
            created_by_id=actor.user_id,
        )
        self.session.add(allocation)
        self.session.flush()

        logger.info(
            "allocation_created",
            extra={
                "allocation_id": str(allocation.id),
                "from_user_id": str(actor.user_id),
                "to_user_id": str(to_user_id),
                "amount": str(value),
                "status": status.value,
            },
        )
        return allocation_to_info(allocation)

    def set_allocation_status(
        self,
        actor: Actor,
        allocation_id: UUID,
        status: AllocationStatus | str,
    ) -> AllocationInfo:
        """
        Move an allocation to approved, rejected or disbursed.

        Raises:
            InvalidStatusError: Target is not approved/rejected/disbursed.
            AllocationNotFoundError: Allocation missing.
            ForbiddenError: Non-Developer acting on an allocation they did
                not receive, or requesting anything but disbursed.
            InvalidAllocationTransitionError: Edge not in the lifecycle.
            InsufficientFundsError: Creator's wallet or source allocation no
                longer covers the amount at disbursement.
        """
        target = parse_target_status(status)
        with LogContext.bind(actor_id=actor.user_id, allocation_id=allocation_id):
            allocation = self._gate.lock_allocation(allocation_id, actor.organization_id)
            check_transition_authority(actor, target, allocation.to_user_id)

            current = AllocationStatus(allocation.status)
            if not is_transition_allowed(current, target):
                raise InvalidAllocationTransitionError(
                    str(allocation_id), current.value, target.value,
                )

            if target == AllocationStatus.DISBURSED and not self._creator_is_developer(allocation):
                if allocation.source_allocation_id is not None:
                    self._gate.require_allocation_funds(
                        allocation.source_allocation_id,
                        allocation.amount,
                        actor.organization_id,
                    )
                self._gate.require_wallet_funds(
                    allocation.from_user_id, actor.organization_id, allocation.amount,
                )

            allocation.status = target.value
            if target == AllocationStatus.DISBURSED:
                allocation.disbursed_at = self.clock.now()
            allocation.updated_by_id = actor.user_id
            self.session.flush()

            logger.info(
                "allocation_status_changed",
                extra={"from_status": current.value, "to_status": target.value},
            )
            return allocation_to_info(allocation)

    def update_allocation(
        self,
        actor: Actor,
        allocation_id: UUID,
        amount: Decimal | str | int | None = None,
        purpose: AllocationPurpose | str | None = None,
        description: str | None = None,
        reference_number: str | None = None,
    ) -> AllocationInfo:
        """
        Edit an allocation's details.  Only the Developer or the creator may
        edit; the amount is frozen once disbursed.

        Raises:
            AllocationNotFoundError, ForbiddenError, AllocationImmutableError,
            InvalidAmountError, InsufficientFundsError.
        """
        allocation = self._gate.lock_allocation(allocation_id, actor.organization_id)
        if not actor.is_developer and allocation.from_user_id != actor.user_id:
            raise ForbiddenError(
                str(actor.user_id),
                "only the creator or a developer may edit an allocation",
                target_id=str(allocation_id),
            )

        if amount is not None:
            value = positive_money(amount)
            if value != allocation.amount:
                if allocation.status == AllocationStatus.DISBURSED.value:
                    raise AllocationImmutableError(str(allocation_id), "amount")
                if not self._creator_is_developer(allocation):
                    self._gate.require_wallet_funds(
                        allocation.from_user_id, actor.organization_id, value,
                    )
                allocation.amount = value
        if purpose is not None:
            allocation.purpose = parse_purpose(purpose).value
        if description is not None:
            allocation.description = description
        if reference_number is not None:
            allocation.reference_number = reference_number

        allocation.updated_by_id = actor.user_id
        self.session.flush()
        logger.info(
            "allocation_updated",
            extra={"allocation_id": str(allocation_id), "actor_id": str(actor.user_id)},
        )
        return allocation_to_info(allocation)

    def delete_allocation(self, actor: Actor, allocation_id: UUID) -> None:
        """
        Raises:
            ForbiddenError: Caller is not a Developer.
            AllocationNotFoundError: Allocation missing.
            AllocationInUseError: Any record still draws on the allocation.
        """
        require_role(actor, frozenset({Role.DEVELOPER}), "delete fund allocations")
        allocation = self._gate.lock_allocation(allocation_id, actor.organization_id)

        references = self._allocations.reference_counts(allocation_id)
        if references:
            raise AllocationInUseError(str(allocation_id), references)

        self.session.delete(allocation)
        self.session.flush()
        logger.warning(
            "allocation_deleted",
            extra={
                "allocation_id": str(allocation_id),
                "actor_id": str(actor.user_id),
                "status": allocation.status,
                "amount": str(allocation.amount),
            },
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, actor: Actor, allocation_id: UUID) -> AllocationInfo:
        allocation = self._get_in_org(allocation_id, actor.organization_id)
        return allocation_to_info(allocation)

    def list_allocations(
        self,
        actor: Actor,
        status: AllocationStatus | str | None = None,
        site_id: UUID | None = None,
    ) -> list[AllocationInfo]:
        parsed = AllocationStatus(status) if status is not None else None
        return self._allocations.list_visible(actor, status=parsed, site_id=site_id)

    def flow_summary(self, actor: Actor, user_id: UUID | None = None) -> FlowSummary:
        user_id = user_id or actor.user_id
        require_authority(actor, user_id, "view fund flow")
        return self._allocations.flow_summary(user_id, actor.organization_id)

    def get_wallet_balance(self, actor: Actor, user_id: UUID | None = None) -> WalletBalance:
        """
        Raises:
            ForbiddenError: User outside the caller's hierarchy.
        """
        user_id = user_id or actor.user_id
        require_authority(actor, user_id, "view wallet balance")
        return self._balances.wallet_balance(user_id, actor.organization_id)

    def get_allocation_balance(self, actor: Actor, allocation_id: UUID) -> AllocationBalance:
        self._get_in_org(allocation_id, actor.organization_id)
        return self._balances.allocation_balance(allocation_id)

    def validate_availability(
        self,
        actor: Actor,
        allocation_id: UUID,
        requested_amount: Decimal | str | int,
    ) -> AvailabilityCheck:
        return self._balances.validate_availability(
            allocation_id, requested_amount, organization_id=actor.organization_id,
        )
