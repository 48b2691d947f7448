"""Unit tests for the fund allocation lifecycle rules."""

from uuid import uuid4

import pytest

from fund_kernel.domain.allocation import (
    ALLOCATION_TRANSITIONS,
    AllocationPurpose,
    AllocationStatus,
    check_transition_authority,
    initial_status_for,
    is_transition_allowed,
    parse_purpose,
    parse_target_status,
)
from fund_kernel.domain.authority import Actor, Role
from fund_kernel.exceptions import ForbiddenError, InvalidStatusError


def _actor(role: Role) -> Actor:
    return Actor(user_id=uuid4(), organization_id=uuid4(), role=role)


class TestTransitions:

    @pytest.mark.parametrize("target", [
        AllocationStatus.APPROVED,
        AllocationStatus.DISBURSED,
        AllocationStatus.REJECTED,
    ])
    def test_pending_moves_anywhere(self, target):
        assert is_transition_allowed(AllocationStatus.PENDING, target)

    def test_approved_cannot_return_to_pending(self):
        assert not is_transition_allowed(AllocationStatus.APPROVED, AllocationStatus.PENDING)

    @pytest.mark.parametrize("terminal", [AllocationStatus.DISBURSED, AllocationStatus.REJECTED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert ALLOCATION_TRANSITIONS[terminal] == frozenset()
        for target in AllocationStatus:
            assert not is_transition_allowed(terminal, target)


class TestParsing:

    def test_parse_target_status(self):
        assert parse_target_status("disbursed") is AllocationStatus.DISBURSED

    def test_pending_is_not_a_target(self):
        with pytest.raises(InvalidStatusError) as exc_info:
            parse_target_status("pending")
        assert exc_info.value.allowed == ("approved", "disbursed", "rejected")

    def test_unknown_status(self):
        with pytest.raises(InvalidStatusError):
            parse_target_status("cancelled")

    def test_parse_purpose(self):
        assert parse_purpose("material") is AllocationPurpose.MATERIAL
        with pytest.raises(InvalidStatusError):
            parse_purpose("holiday")


class TestAuthority:

    def test_developer_allocations_start_disbursed(self):
        assert initial_status_for(_actor(Role.DEVELOPER)) is AllocationStatus.DISBURSED
        assert initial_status_for(_actor(Role.ENGINEER)) is AllocationStatus.PENDING

    def test_developer_may_do_anything(self):
        actor = _actor(Role.DEVELOPER)
        for target in (AllocationStatus.APPROVED, AllocationStatus.REJECTED):
            check_transition_authority(actor, target, uuid4())

    def test_recipient_may_mark_received(self):
        actor = _actor(Role.SUPERVISOR)
        check_transition_authority(actor, AllocationStatus.DISBURSED, actor.user_id)

    def test_recipient_may_not_approve(self):
        actor = _actor(Role.SUPERVISOR)
        with pytest.raises(ForbiddenError):
            check_transition_authority(actor, AllocationStatus.APPROVED, actor.user_id)

    def test_non_recipient_may_not_disburse(self):
        with pytest.raises(ForbiddenError):
            check_transition_authority(_actor(Role.ENGINEER), AllocationStatus.DISBURSED, uuid4())
