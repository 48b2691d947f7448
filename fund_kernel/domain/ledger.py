"""
Worker ledger domain types (``fund_kernel.domain.ledger``).

A ledger entry is a one-sided movement on a worker's account:

* ``credit`` -- money owed or paid TO the worker (salary, advance, bonus,
  contract payment, reimbursement, accrued pending salary).
* ``debit``  -- money taken back FROM the worker's account (deduction of an
  advance, recoveries).

Only entries that move cash consume a fund allocation.  Accrued
``pending_salary`` is an obligation, not a payment: when settlement stamps the
paying allocation onto those entries it records provenance only, and the
cash leaves through the single ``salary`` credit written alongside.
"""

from __future__ import annotations

from enum import Enum

from fund_kernel.exceptions import InvalidStatusError


class EntryType(str, Enum):
    """Direction of a ledger entry."""

    CREDIT = "credit"
    DEBIT = "debit"


class LedgerCategory(str, Enum):
    """What a ledger entry represents."""

    SALARY = "salary"
    PENDING_SALARY = "pending_salary"
    ADVANCE = "advance"
    DEDUCTION = "deduction"
    BONUS = "bonus"
    CONTRACT_PAYMENT = "contract_payment"
    REIMBURSEMENT = "reimbursement"
    OTHER = "other"


class EntryStatus(str, Enum):
    """Settlement state of a ledger entry."""

    PENDING = "pending"
    PAID = "paid"


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    UPI = "upi"
    OTHER = "other"


# Categories that never move cash and so never draw on an allocation.
NON_CASH_CATEGORIES: frozenset[LedgerCategory] = frozenset({
    LedgerCategory.PENDING_SALARY,
})


def consumes_funds(category: LedgerCategory) -> bool:
    """True if an entry of this category counts against its allocation."""
    return category not in NON_CASH_CATEGORIES


def initial_status(category: LedgerCategory) -> EntryStatus:
    """Accruals wait for settlement; every other entry is a completed payment."""
    if category == LedgerCategory.PENDING_SALARY:
        return EntryStatus.PENDING
    return EntryStatus.PAID


def _parse(enum_cls, value, record_type: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidStatusError(
            record_type, str(value), tuple(m.value for m in enum_cls)
        ) from None


def parse_entry_type(value: str | EntryType) -> EntryType:
    return _parse(EntryType, value, "ledger entry type")


def parse_category(value: str | LedgerCategory) -> LedgerCategory:
    return _parse(LedgerCategory, value, "ledger category")


def parse_payment_mode(value: str | PaymentMode) -> PaymentMode:
    return _parse(PaymentMode, value, "payment mode")
