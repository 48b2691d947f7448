"""
Authority domain types (``fund_kernel.domain.authority``).

Responsibility
--------------
Pure value objects and rules for the role hierarchy: who may act on whose
behalf.  The subordinate set is resolved by
``fund_kernel.selectors.hierarchy_selector`` and passed in; nothing here
touches the database.

Rules
-----
* A Developer acts on anyone in their organization.
* Everyone else acts on themselves and on users below them in the
  ``parent`` tree.
* Only Developers, Engineers and Supervisors manage money; Workers only
  receive it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from uuid import UUID

from fund_kernel.exceptions import ForbiddenError


class Role(IntEnum):
    """Hierarchy level of a user (lower value = more authority)."""

    DEVELOPER = 1
    ENGINEER = 2
    SUPERVISOR = 3
    WORKER = 4


MANAGING_ROLES: frozenset[Role] = frozenset({
    Role.DEVELOPER,
    Role.ENGINEER,
    Role.SUPERVISOR,
})


@dataclass(frozen=True)
class Actor:
    """The caller of an engine operation, with its materialized subordinate set."""

    user_id: UUID
    organization_id: UUID
    role: Role
    subordinate_ids: frozenset[UUID] = frozenset()

    @property
    def is_developer(self) -> bool:
        return self.role == Role.DEVELOPER

    @property
    def can_manage_funds(self) -> bool:
        return self.role in MANAGING_ROLES

    def has_authority_over(self, user_id: UUID) -> bool:
        """Self, any user for a Developer, or a user in the subordinate set."""
        if self.is_developer or user_id == self.user_id:
            return True
        return user_id in self.subordinate_ids


def require_role(actor: Actor, allowed: frozenset[Role], action: str) -> None:
    """Raise ForbiddenError unless the actor's role is in ``allowed``."""
    if actor.role not in allowed:
        raise ForbiddenError(
            str(actor.user_id),
            f"role {actor.role.name.lower()} may not {action}",
        )


def require_authority(actor: Actor, user_id: UUID, action: str) -> None:
    """Raise ForbiddenError unless the actor has authority over ``user_id``."""
    if not actor.has_authority_over(user_id):
        raise ForbiddenError(
            str(actor.user_id),
            f"user is outside the caller's hierarchy; cannot {action}",
            target_id=str(user_id),
        )
