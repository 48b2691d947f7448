"""Fund allocation lifecycle through AllocationService."""

from decimal import Decimal
from uuid import uuid4

import pytest

from fund_kernel.domain.allocation import AllocationStatus
from fund_kernel.domain.authority import Role
from fund_kernel.exceptions import (
    AllocationImmutableError,
    AllocationInUseError,
    AllocationNotFoundError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidAllocationTransitionError,
    InvalidAmountError,
    InvalidStatusError,
    UserNotFoundError,
)
from fund_kernel.models import FundAllocation


@pytest.fixture
def funded_engineer(developer, engineer, make_allocation):
    """Engineer holding 10,000 received from the developer."""
    return make_allocation(developer, engineer, 10000)


class TestCreateAllocation:

    def test_developer_allocation_is_disbursed(
        self, allocation_service, actor_for, developer, engineer, deterministic_clock,
    ):
        info = allocation_service.create_allocation(
            actor_for(developer), engineer.id, "25000.00", purpose="material",
        )
        assert info.status is AllocationStatus.DISBURSED
        assert info.amount == Decimal("25000.00")
        assert info.disbursed_at == deterministic_clock.now()
        assert info.from_user_id == developer.id

    def test_engineer_allocation_starts_pending(
        self, allocation_service, balances, actor_for, org, engineer, supervisor, funded_engineer,
    ):
        info = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 4000)
        assert info.status is AllocationStatus.PENDING
        assert info.disbursed_at is None
        # pending allocations do not move money yet
        assert balances.wallet_balance(engineer.id, org.id).balance == Decimal("10000.00")

    def test_wallet_gate(self, allocation_service, actor_for, engineer, supervisor, funded_engineer):
        with pytest.raises(InsufficientFundsError) as exc_info:
            allocation_service.create_allocation(actor_for(engineer), supervisor.id, "10000.01")
        assert exc_info.value.user_id == str(engineer.id)
        assert exc_info.value.available == Decimal("10000.00")

    def test_worker_cannot_allocate(self, allocation_service, actor_for, worker, supervisor):
        with pytest.raises(ForbiddenError):
            allocation_service.create_allocation(actor_for(worker), supervisor.id, 100)

    def test_recipient_outside_hierarchy(
        self, allocation_service, actor_for, supervisor, outside_worker,
    ):
        with pytest.raises(ForbiddenError):
            allocation_service.create_allocation(actor_for(supervisor), outside_worker.id, 100)

    def test_recipient_upward_is_forbidden(self, allocation_service, actor_for, engineer, developer):
        with pytest.raises(ForbiddenError):
            allocation_service.create_allocation(actor_for(engineer), developer.id, 100)

    def test_unknown_recipient(self, allocation_service, actor_for, developer):
        with pytest.raises(UserNotFoundError):
            allocation_service.create_allocation(actor_for(developer), uuid4(), 100)

    @pytest.mark.parametrize("amount", ["0", "-5", "10.001"])
    def test_invalid_amount(self, allocation_service, actor_for, developer, engineer, amount):
        with pytest.raises(InvalidAmountError):
            allocation_service.create_allocation(actor_for(developer), engineer.id, amount)

    def test_source_allocation_must_cover_amount(
        self, allocation_service, actor_for, engineer, supervisor, funded_engineer, make_allocation,
    ):
        make_allocation(engineer, supervisor, 7000, source=funded_engineer)
        with pytest.raises(InsufficientFundsError) as exc_info:
            allocation_service.create_allocation(
                actor_for(engineer), supervisor.id, 3500,
                source_allocation_id=funded_engineer.id,
            )
        assert exc_info.value.allocation_id == str(funded_engineer.id)

    def test_source_allocation_must_be_received(
        self, allocation_service, actor_for, supervisor, worker, funded_engineer,
    ):
        with pytest.raises(ForbiddenError):
            allocation_service.create_allocation(
                actor_for(supervisor), worker.id, 100,
                source_allocation_id=funded_engineer.id,
            )


class TestSetAllocationStatus:

    def test_recipient_marks_received(
        self, allocation_service, balances, actor_for, org, engineer, supervisor, funded_engineer,
    ):
        created = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 4000)
        info = allocation_service.set_allocation_status(
            actor_for(supervisor), created.id, "disbursed",
        )
        assert info.status is AllocationStatus.DISBURSED
        assert info.disbursed_at is not None
        assert balances.wallet_balance(engineer.id, org.id).balance == Decimal("6000.00")
        assert balances.wallet_balance(supervisor.id, org.id).balance == Decimal("4000.00")

    def test_developer_approves_then_recipient_disburses(
        self, allocation_service, actor_for, developer, engineer, supervisor, funded_engineer,
    ):
        created = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 1000)
        approved = allocation_service.set_allocation_status(
            actor_for(developer), created.id, AllocationStatus.APPROVED,
        )
        assert approved.status is AllocationStatus.APPROVED
        done = allocation_service.set_allocation_status(actor_for(supervisor), created.id, "disbursed")
        assert done.status is AllocationStatus.DISBURSED

    def test_sender_cannot_approve_own_allocation(
        self, allocation_service, actor_for, engineer, supervisor, funded_engineer,
    ):
        created = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 1000)
        with pytest.raises(ForbiddenError):
            allocation_service.set_allocation_status(actor_for(engineer), created.id, "approved")

    def test_disbursed_is_terminal(self, allocation_service, actor_for, developer, funded_engineer):
        with pytest.raises(InvalidAllocationTransitionError):
            allocation_service.set_allocation_status(
                actor_for(developer), funded_engineer.id, "rejected",
            )

    def test_pending_is_not_requestable(self, allocation_service, actor_for, developer, funded_engineer):
        with pytest.raises(InvalidStatusError):
            allocation_service.set_allocation_status(
                actor_for(developer), funded_engineer.id, "pending",
            )

    def test_disbursement_rechecks_creator_wallet(
        self, allocation_service, actor_for, session, engineer, supervisor, funded_engineer,
    ):
        first = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 8000)
        second = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 8000)
        allocation_service.set_allocation_status(actor_for(supervisor), first.id, "disbursed")

        with pytest.raises(InsufficientFundsError):
            allocation_service.set_allocation_status(actor_for(supervisor), second.id, "disbursed")
        assert session.get(FundAllocation, second.id).status == "pending"

    def test_missing_allocation(self, allocation_service, actor_for, developer):
        with pytest.raises(AllocationNotFoundError):
            allocation_service.set_allocation_status(actor_for(developer), uuid4(), "approved")


class TestUpdateAllocation:

    def test_disbursed_amount_is_frozen(self, allocation_service, actor_for, developer, funded_engineer):
        with pytest.raises(AllocationImmutableError):
            allocation_service.update_allocation(actor_for(developer), funded_engineer.id, amount=1)

    def test_details_editable_after_disbursement(
        self, allocation_service, actor_for, developer, funded_engineer,
    ):
        info = allocation_service.update_allocation(
            actor_for(developer), funded_engineer.id,
            amount="10000.00", description="Slab casting", reference_number="UTR-77",
        )
        assert info.description == "Slab casting"
        assert info.reference_number == "UTR-77"

    def test_pending_increase_rechecks_wallet(
        self, allocation_service, actor_for, engineer, supervisor, funded_engineer,
    ):
        created = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 1000)
        assert allocation_service.update_allocation(
            actor_for(engineer), created.id, amount=9000,
        ).amount == Decimal("9000.00")
        with pytest.raises(InsufficientFundsError):
            allocation_service.update_allocation(actor_for(engineer), created.id, amount=10001)

    def test_only_creator_or_developer(
        self, allocation_service, actor_for, engineer, supervisor, funded_engineer,
    ):
        created = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 1000)
        with pytest.raises(ForbiddenError):
            allocation_service.update_allocation(actor_for(supervisor), created.id, description="x")


class TestDeleteAllocation:

    def test_developer_deletes_unused(self, allocation_service, actor_for, session, developer, funded_engineer):
        allocation_id = funded_engineer.id
        allocation_service.delete_allocation(actor_for(developer), allocation_id)
        assert session.get(FundAllocation, allocation_id) is None

    def test_in_use(
        self, allocation_service, actor_for, developer, engineer, supervisor, worker,
        funded_engineer, make_allocation, make_entry,
    ):
        make_allocation(engineer, supervisor, 100, source=funded_engineer)
        make_entry(worker, "credit", "advance", 50, engineer, allocation=funded_engineer)
        with pytest.raises(AllocationInUseError) as exc_info:
            allocation_service.delete_allocation(actor_for(developer), funded_engineer.id)
        assert exc_info.value.reference_counts == {"ledger_entries": 1, "sub_allocations": 1}

    def test_non_developer(self, allocation_service, actor_for, engineer, supervisor, funded_engineer):
        created = allocation_service.create_allocation(actor_for(engineer), supervisor.id, 10)
        with pytest.raises(ForbiddenError):
            allocation_service.delete_allocation(actor_for(engineer), created.id)


class TestReads:

    def test_visibility_by_role(
        self, allocation_service, actor_for, make_user, developer, engineer, supervisor, worker,
        funded_engineer, make_allocation,
    ):
        to_supervisor = make_allocation(engineer, supervisor, 500)
        to_worker = make_allocation(supervisor, worker, 200)
        other_engineer = make_user(Role.ENGINEER, parent=developer)
        make_allocation(developer, other_engineer, 300)

        assert len(allocation_service.list_allocations(actor_for(developer))) == 4
        engineer_view = {a.id for a in allocation_service.list_allocations(actor_for(engineer))}
        assert engineer_view == {funded_engineer.id, to_supervisor.id}
        worker_view = [a.id for a in allocation_service.list_allocations(actor_for(worker))]
        assert worker_view == [to_worker.id]

    def test_status_filter(
        self, allocation_service, actor_for, developer, engineer, supervisor, funded_engineer,
    ):
        allocation_service.create_allocation(actor_for(engineer), supervisor.id, 10)
        pending = allocation_service.list_allocations(actor_for(developer), status="pending")
        assert [a.status for a in pending] == [AllocationStatus.PENDING]

    def test_flow_summary(
        self, allocation_service, actor_for, engineer, supervisor, funded_engineer, make_allocation,
    ):
        make_allocation(engineer, supervisor, 3000)
        make_allocation(engineer, engineer, 999)
        allocation_service.create_allocation(actor_for(engineer), supervisor.id, 700)

        flow = allocation_service.flow_summary(actor_for(engineer))
        assert flow.received == Decimal("10000.00")
        assert flow.passed_down == Decimal("3000.00")

        supervisor_flow = allocation_service.flow_summary(actor_for(engineer), supervisor.id)
        assert supervisor_flow.received == Decimal("3000.00")
        assert supervisor_flow.pending_to_receive == Decimal("700.00")

    def test_wallet_of_superior_is_hidden(self, allocation_service, actor_for, engineer, supervisor):
        with pytest.raises(ForbiddenError):
            allocation_service.get_wallet_balance(actor_for(supervisor), engineer.id)

    def test_validate_availability(self, allocation_service, actor_for, engineer, funded_engineer):
        check = allocation_service.validate_availability(actor_for(engineer), funded_engineer.id, "500")
        assert check.available
        assert allocation_service.get_allocation_balance(
            actor_for(engineer), funded_engineer.id,
        ).remaining == Decimal("10000.00")
