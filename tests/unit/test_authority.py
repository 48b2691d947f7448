"""Unit tests for the role hierarchy rules."""

from uuid import uuid4

import pytest

from fund_kernel.domain.authority import (
    MANAGING_ROLES,
    Actor,
    Role,
    require_authority,
    require_role,
)
from fund_kernel.exceptions import ForbiddenError


ORG = uuid4()


def _actor(role: Role, subordinates=()) -> Actor:
    return Actor(
        user_id=uuid4(),
        organization_id=ORG,
        role=role,
        subordinate_ids=frozenset(subordinates),
    )


class TestHasAuthorityOver:

    def test_developer_over_anyone(self):
        assert _actor(Role.DEVELOPER).has_authority_over(uuid4())

    def test_self(self):
        actor = _actor(Role.WORKER)
        assert actor.has_authority_over(actor.user_id)

    def test_subordinate(self):
        sub = uuid4()
        assert _actor(Role.SUPERVISOR, [sub]).has_authority_over(sub)

    def test_stranger(self):
        assert not _actor(Role.ENGINEER, [uuid4()]).has_authority_over(uuid4())


class TestRequire:

    def test_worker_cannot_manage_funds(self):
        actor = _actor(Role.WORKER)
        assert not actor.can_manage_funds
        with pytest.raises(ForbiddenError) as exc_info:
            require_role(actor, MANAGING_ROLES, "allocate funds")
        assert "worker" in str(exc_info.value)

    def test_require_authority_names_target(self):
        target = uuid4()
        with pytest.raises(ForbiddenError) as exc_info:
            require_authority(_actor(Role.SUPERVISOR), target, "pay salary")
        assert exc_info.value.target_id == str(target)
        assert exc_info.value.code == "FORBIDDEN"
