"""
Fund allocation domain types (``fund_kernel.domain.allocation``).

Responsibility
--------------
Pure value objects for the fund allocation lifecycle: statuses, purposes,
the transition table, and the rule deciding which actor may perform which
transition.

Lifecycle
---------
::

    pending --> approved --> disbursed
       |           |
       |           +-------> rejected
       +--> disbursed
       +--> rejected

``disbursed`` and ``rejected`` have no outgoing edges.  Only ``disbursed``
allocations are consumable; ``pending``, ``approved`` and ``rejected``
allocations contribute zero to every balance.

A recipient moving their own pending allocation straight to ``disbursed``
is the "mark as received" action, so ``pending -> disbursed`` is a legal
edge.
"""

from __future__ import annotations

from enum import Enum

from fund_kernel.domain.authority import Actor
from fund_kernel.exceptions import ForbiddenError, InvalidStatusError


class AllocationStatus(str, Enum):
    """Fund allocation lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    REJECTED = "rejected"


class AllocationPurpose(str, Enum):
    """What the transferred money is meant for."""

    SITE_EXPENSE = "site_expense"
    LABOR_EXPENSE = "labor_expense"
    MATERIAL = "material"
    EQUIPMENT = "equipment"
    OTHER = "other"


ALLOCATION_TRANSITIONS: dict[AllocationStatus, frozenset[AllocationStatus]] = {
    AllocationStatus.PENDING: frozenset({
        AllocationStatus.APPROVED,
        AllocationStatus.DISBURSED,
        AllocationStatus.REJECTED,
    }),
    AllocationStatus.APPROVED: frozenset({
        AllocationStatus.DISBURSED,
        AllocationStatus.REJECTED,
    }),
    AllocationStatus.DISBURSED: frozenset(),
    AllocationStatus.REJECTED: frozenset(),
}

# Statuses a caller may request explicitly; ``pending`` is only ever initial.
TARGET_STATUSES: frozenset[AllocationStatus] = frozenset({
    AllocationStatus.APPROVED,
    AllocationStatus.REJECTED,
    AllocationStatus.DISBURSED,
})


def parse_target_status(value: str | AllocationStatus) -> AllocationStatus:
    """Parse a requested status, accepting only approved/rejected/disbursed."""
    try:
        status = AllocationStatus(value)
    except ValueError:
        status = None
    if status is None or status not in TARGET_STATUSES:
        raise InvalidStatusError(
            "fund allocation",
            str(getattr(value, "value", value)),
            tuple(sorted(s.value for s in TARGET_STATUSES)),
        )
    return status


def parse_purpose(value: str | AllocationPurpose) -> AllocationPurpose:
    try:
        return AllocationPurpose(value)
    except ValueError:
        raise InvalidStatusError(
            "fund allocation purpose",
            str(value),
            tuple(p.value for p in AllocationPurpose),
        ) from None


def initial_status_for(actor: Actor) -> AllocationStatus:
    """Developer allocations are disbursed on creation; all others start pending."""
    if actor.is_developer:
        return AllocationStatus.DISBURSED
    return AllocationStatus.PENDING


def is_transition_allowed(
    from_status: AllocationStatus,
    to_status: AllocationStatus,
) -> bool:
    return to_status in ALLOCATION_TRANSITIONS.get(from_status, frozenset())


def check_transition_authority(
    actor: Actor,
    to_status: AllocationStatus,
    recipient_id,
) -> None:
    """
    Developers may approve, reject or disburse any allocation in their
    organization.  Anyone else may only mark an allocation they received
    as disbursed.

    Raises:
        ForbiddenError: If the actor may not perform this transition.
    """
    if actor.is_developer:
        return
    if to_status != AllocationStatus.DISBURSED or recipient_id != actor.user_id:
        raise ForbiddenError(
            str(actor.user_id),
            "can only mark as disbursed for funds you received",
        )
