"""
FundGate -- transactional balance check for every spend-creating write.

Responsibility:
    Lock the row that serializes a class of spends, recompute the relevant
    balance inside the writer's transaction, and raise if the spend does
    not fit.  Callers perform their write only after the gate returns.

    - ``require_allocation_funds`` locks the allocation row.  Every spend
      drawing on one allocation (settlement, expense, bill, funded ledger
      credit, sub-allocation, contract payment) goes through it, so two
      concurrent spends cannot both pass on a stale remaining balance.
    - ``require_wallet_funds`` locks the spender's user row before
      computing their wallet, for allocations created out of a wallet.
    - ``require_spendable_by`` locks the allocation and requires the
      caller to be its recipient.  Developers may draw on any allocation.

Failure modes:
    - ForbiddenError: non-Developer drawing on an allocation they did not receive.
    - AllocationNotFoundError: allocation missing or in another organization.
    - AllocationNotDisbursedError: allocation is not disbursed.
    - InsufficientFundsError: amount exceeds the balance.

On SQLite ``FOR UPDATE`` renders as nothing; the database-level write lock
serializes writers instead.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from fund_kernel.db.types import to_money
from fund_kernel.domain.allocation import AllocationStatus
from fund_kernel.domain.authority import Actor
from fund_kernel.exceptions import (
    AllocationNotDisbursedError,
    AllocationNotFoundError,
    ForbiddenError,
    InsufficientFundsError,
    UserNotFoundError,
)
from fund_kernel.logging_config import get_logger
from fund_kernel.models.fund_allocation import FundAllocation
from fund_kernel.models.organization import User
from fund_kernel.selectors.balance_selector import (
    AvailabilityCheck,
    BalanceSelector,
    WalletBalance,
)
from fund_kernel.services.base import BaseService

logger = get_logger("services.fund_gate")


class FundGate(BaseService[FundAllocation]):
    """Lock-then-check guard shared by every balance-gated write."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._balances = BalanceSelector(session)

    def lock_allocation(self, allocation_id: UUID, organization_id: UUID) -> FundAllocation:
        """
        SELECT ... FOR UPDATE the allocation row, refreshing any stale copy
        in the identity map.

        Raises:
            AllocationNotFoundError: If missing or outside the organization.
        """
        stmt = (
            select(FundAllocation)
            .where(FundAllocation.id == allocation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        allocation = self.session.execute(stmt).scalar_one_or_none()
        if allocation is None or allocation.organization_id != organization_id:
            raise AllocationNotFoundError(str(allocation_id))
        return allocation

    def require_disbursed(self, allocation_id: UUID, organization_id: UUID) -> FundAllocation:
        """
        Lock the allocation and require it to be disbursed.

        Raises:
            AllocationNotFoundError: If missing or outside the organization.
            AllocationNotDisbursedError: If not disbursed.
        """
        allocation = self.lock_allocation(allocation_id, organization_id)
        if allocation.status != AllocationStatus.DISBURSED.value:
            raise AllocationNotDisbursedError(str(allocation_id), allocation.status)
        return allocation

    def require_spendable_by(self, actor: Actor, allocation_id: UUID) -> FundAllocation:
        """
        Lock the allocation, require it disbursed, and require ``actor`` to
        be its recipient unless they are a Developer.

        Raises:
            AllocationNotFoundError, AllocationNotDisbursedError.
            ForbiddenError: Allocation was received by someone else.
        """
        allocation = self.require_disbursed(allocation_id, actor.organization_id)
        if not actor.is_developer and allocation.to_user_id != actor.user_id:
            logger.warning(
                "allocation_not_received_by_actor",
                extra={
                    "allocation_id": str(allocation_id),
                    "actor_id": str(actor.user_id),
                    "recipient_id": str(allocation.to_user_id),
                },
            )
            raise ForbiddenError(
                str(actor.user_id),
                "can only spend from funds you received",
                target_id=str(allocation_id),
            )
        return allocation

    def require_allocation_funds(
        self,
        allocation_id: UUID,
        amount: Decimal,
        organization_id: UUID,
    ) -> AvailabilityCheck:
        """
        Lock the allocation and require ``amount`` to fit its remaining balance.

        Returns:
            The passing AvailabilityCheck.

        Raises:
            AllocationNotFoundError, AllocationNotDisbursedError,
            InsufficientFundsError.
        """
        self.require_disbursed(allocation_id, organization_id)
        check = self._balances.validate_availability(
            allocation_id, amount, organization_id=organization_id,
        )
        if not check.available:
            logger.warning(
                "allocation_funds_insufficient",
                extra={
                    "allocation_id": str(allocation_id),
                    "available": str(check.balance),
                    "requested": str(check.requested),
                },
            )
            raise InsufficientFundsError(
                available=check.balance,
                requested=check.requested,
                allocation_id=str(allocation_id),
            )
        logger.debug(
            "allocation_funds_reserved",
            extra={
                "allocation_id": str(allocation_id),
                "available": str(check.balance),
                "requested": str(check.requested),
            },
        )
        return check

    def require_wallet_funds(
        self,
        user_id: UUID,
        organization_id: UUID,
        amount: Decimal,
    ) -> WalletBalance:
        """
        Lock the spender's user row and require ``amount`` to fit their wallet.

        Raises:
            UserNotFoundError: If the user is missing or outside the organization.
            InsufficientFundsError: If the wallet balance is too small.
        """
        requested = to_money(amount)
        stmt = (
            select(User)
            .where(User.id == user_id, User.organization_id == organization_id)
            .with_for_update()
        )
        if self.session.execute(stmt).scalar_one_or_none() is None:
            raise UserNotFoundError(str(user_id))

        wallet = self._balances.wallet_balance(user_id, organization_id)
        if requested > wallet.balance:
            logger.warning(
                "wallet_funds_insufficient",
                extra={
                    "user_id": str(user_id),
                    "available": str(wallet.balance),
                    "requested": str(requested),
                },
            )
            raise InsufficientFundsError(
                available=wallet.balance,
                requested=requested,
                user_id=str(user_id),
            )
        return wallet
