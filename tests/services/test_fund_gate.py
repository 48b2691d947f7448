"""FundGate: lock, then check, then let the caller write."""

from decimal import Decimal
from uuid import uuid4

import pytest

from fund_kernel.exceptions import (
    AllocationNotDisbursedError,
    AllocationNotFoundError,
    InsufficientFundsError,
    UserNotFoundError,
)
from fund_kernel.services.fund_gate import FundGate


@pytest.fixture
def gate(session, deterministic_clock):
    return FundGate(session, deterministic_clock)


class TestAllocationGate:

    def test_passes_exact_remaining(self, gate, org, developer, engineer, make_allocation):
        allocation = make_allocation(developer, engineer, 500)
        check = gate.require_allocation_funds(allocation.id, Decimal("500.00"), org.id)
        assert check.available

    def test_refuses_and_logs(self, gate, org, developer, engineer, make_allocation, captured_logs):
        allocation = make_allocation(developer, engineer, 500)
        with pytest.raises(InsufficientFundsError) as exc_info:
            gate.require_allocation_funds(allocation.id, Decimal("500.01"), org.id)

        assert exc_info.value.code == "INSUFFICIENT_FUNDS"
        assert exc_info.value.available == Decimal("500.00")
        refused = [r for r in captured_logs() if r["message"] == "allocation_funds_insufficient"]
        assert refused[0]["allocation_id"] == str(allocation.id)
        assert refused[0]["level"] == "WARNING"

    def test_not_disbursed(self, gate, org, developer, engineer, make_allocation):
        allocation = make_allocation(developer, engineer, 500, status="pending")
        with pytest.raises(AllocationNotDisbursedError) as exc_info:
            gate.require_allocation_funds(allocation.id, Decimal("1"), org.id)
        assert exc_info.value.status == "pending"

    def test_other_organization_is_not_found(self, gate, developer, engineer, make_allocation):
        allocation = make_allocation(developer, engineer, 500)
        with pytest.raises(AllocationNotFoundError):
            gate.lock_allocation(allocation.id, uuid4())

    def test_lock_refreshes_stale_row(self, gate, session, org, developer, engineer, make_allocation):
        allocation = make_allocation(developer, engineer, 500)
        session.execute(
            allocation.__table__.update()
            .where(allocation.__table__.c.id == str(allocation.id))
            .values(status="rejected")
        )
        assert gate.lock_allocation(allocation.id, org.id).status == "rejected"


class TestWalletGate:

    def test_wallet(self, gate, org, developer, engineer, make_allocation):
        make_allocation(developer, engineer, 700)
        assert gate.require_wallet_funds(engineer.id, org.id, Decimal("700")).balance == Decimal("700.00")
        with pytest.raises(InsufficientFundsError) as exc_info:
            gate.require_wallet_funds(engineer.id, org.id, Decimal("700.01"))
        assert exc_info.value.user_id == str(engineer.id)

    def test_unknown_user(self, gate, org):
        with pytest.raises(UserNotFoundError):
            gate.require_wallet_funds(uuid4(), org.id, Decimal("1"))
