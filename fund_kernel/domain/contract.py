"""
Contract lifecycle (``fund_kernel.domain.contract``).

::

    draft --> active <--> on_hold
      |         |            |
      |         +--> completed
      +---------+------------+--> terminated

Payments are only accepted while ``active``.  A contract paid in full moves
to ``completed`` automatically.
"""

from __future__ import annotations

from enum import Enum

from fund_kernel.exceptions import InvalidStatusError


class ContractStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    TERMINATED = "terminated"


CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.DRAFT: frozenset({ContractStatus.ACTIVE, ContractStatus.TERMINATED}),
    ContractStatus.ACTIVE: frozenset({
        ContractStatus.ON_HOLD,
        ContractStatus.COMPLETED,
        ContractStatus.TERMINATED,
    }),
    ContractStatus.ON_HOLD: frozenset({ContractStatus.ACTIVE, ContractStatus.TERMINATED}),
    ContractStatus.COMPLETED: frozenset(),
    ContractStatus.TERMINATED: frozenset(),
}


def next_contract_status(current: str, requested: ContractStatus | str) -> ContractStatus:
    """
    Raises:
        InvalidStatusError: If ``requested`` is unknown or not reachable.
    """
    allowed = CONTRACT_TRANSITIONS[ContractStatus(current)]
    try:
        target = ContractStatus(requested)
    except ValueError:
        target = None
    if target is None or target not in allowed:
        raise InvalidStatusError(
            "contract",
            str(getattr(requested, "value", requested)),
            tuple(sorted(s.value for s in allowed)),
        )
    return target
