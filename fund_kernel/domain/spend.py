"""
Expense and bill lifecycles (``fund_kernel.domain.spend``).

::

    expense:  pending --> approved --> paid
                 |           |
                 +-----------+--> rejected
                 +--> paid

    bill:     pending --> credited --> paid
                 |           |
                 +-----------+--> rejected
                 +--> paid

An expense consumes its allocation in every state except ``rejected``.  A
bill consumes its allocation from the moment it is ``credited`` or ``paid``;
a bill moved to ``rejected`` after crediting releases the funds again.
"""

from __future__ import annotations

from enum import Enum

from fund_kernel.exceptions import InvalidStatusError


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class BillStatus(str, Enum):
    PENDING = "pending"
    CREDITED = "credited"
    PAID = "paid"
    REJECTED = "rejected"


class BillType(str, Enum):
    MATERIAL = "material"
    SERVICE = "service"
    EQUIPMENT = "equipment"
    LABOR = "labor"
    OTHER = "other"


EXPENSE_TRANSITIONS: dict[ExpenseStatus, frozenset[ExpenseStatus]] = {
    ExpenseStatus.PENDING: frozenset({
        ExpenseStatus.APPROVED,
        ExpenseStatus.PAID,
        ExpenseStatus.REJECTED,
    }),
    ExpenseStatus.APPROVED: frozenset({ExpenseStatus.PAID, ExpenseStatus.REJECTED}),
    ExpenseStatus.PAID: frozenset(),
    ExpenseStatus.REJECTED: frozenset(),
}

BILL_TRANSITIONS: dict[BillStatus, frozenset[BillStatus]] = {
    BillStatus.PENDING: frozenset({
        BillStatus.CREDITED,
        BillStatus.PAID,
        BillStatus.REJECTED,
    }),
    BillStatus.CREDITED: frozenset({BillStatus.PAID, BillStatus.REJECTED}),
    BillStatus.PAID: frozenset(),
    BillStatus.REJECTED: frozenset(),
}

BILL_CONSUMING: frozenset[BillStatus] = frozenset({BillStatus.CREDITED, BillStatus.PAID})


def expense_consumes(status: ExpenseStatus) -> bool:
    return status != ExpenseStatus.REJECTED


def bill_consumes(status: BillStatus) -> bool:
    return status in BILL_CONSUMING


def _parse_transition(enum_cls, table, record_type, current, requested):
    try:
        target = enum_cls(requested)
    except ValueError:
        target = None
    allowed = table[enum_cls(current)]
    if target is None or target not in allowed:
        raise InvalidStatusError(
            record_type,
            str(getattr(requested, "value", requested)),
            tuple(sorted(s.value for s in allowed)),
        )
    return target


def next_expense_status(current: str, requested: ExpenseStatus | str) -> ExpenseStatus:
    """Validate an expense status change and return the target."""
    return _parse_transition(
        ExpenseStatus, EXPENSE_TRANSITIONS, "expense", current, requested,
    )


def next_bill_status(current: str, requested: BillStatus | str) -> BillStatus:
    """Validate a bill status change and return the target."""
    return _parse_transition(BillStatus, BILL_TRANSITIONS, "bill", current, requested)


def parse_bill_type(value: BillType | str) -> BillType:
    try:
        return BillType(value)
    except ValueError:
        raise InvalidStatusError(
            "bill type", str(value), tuple(t.value for t in BillType),
        ) from None
