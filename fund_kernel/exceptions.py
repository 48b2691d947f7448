"""
Typed Exception Hierarchy for the Fund Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (HTTP routes, background jobs, tests) must be able to
tell an insufficient balance from a missing worker without parsing message
text.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (balance, requested amount, ids)

Example - handling a failed settlement:

    try:
        summary = settlement.pay_salary(actor, worker_id, allocation_id)
    except InsufficientFundsError as e:
        return {"error": e.code, "available": str(e.available),
                "requested": str(e.requested)}
    except NoPendingEntriesError as e:
        return {"error": e.code, "worker_id": e.worker_id}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FundKernelError (base)
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   |   +-- WorkerNotFoundError
    |   +-- AllocationNotFoundError
    |   +-- SiteNotFoundError
    |   +-- LedgerEntryNotFoundError
    |   +-- ContractNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- BillNotFoundError
    |
    +-- ForbiddenError
    |
    +-- InvalidStateError
    |   +-- AllocationNotDisbursedError
    |   +-- InvalidAllocationTransitionError
    |   +-- AllocationImmutableError
    |   +-- AllocationInUseError
    |   +-- ContractNotActiveError
    |   +-- InvalidStatusError
    |   +-- AdvanceAlreadyDeductedError
    |
    +-- InsufficientFundsError
    |
    +-- NoPendingWorkError
    |   +-- NoPendingEntriesError
    |   +-- EmptySelectionError
    |
    +-- ValidationError
        +-- InvalidAmountError
        +-- InvalidLedgerEntryError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|--------------------------------------
Not found       | USER_NOT_FOUND                | User id doesn't exist (or other org)
                | WORKER_NOT_FOUND              | Worker id doesn't exist (or other org)
                | ALLOCATION_NOT_FOUND          | Fund allocation id doesn't exist
                | SITE_NOT_FOUND                | Site missing or outside organization
                | LEDGER_ENTRY_NOT_FOUND        | Ledger entry id doesn't exist
                | CONTRACT_NOT_FOUND            | Contract id doesn't exist
                | EXPENSE_NOT_FOUND             | Expense id doesn't exist
                | BILL_NOT_FOUND                | Bill id doesn't exist
----------------|-------------------------------|--------------------------------------
Authority       | FORBIDDEN                     | Role or hierarchy check failed
----------------|-------------------------------|--------------------------------------
State           | ALLOCATION_NOT_DISBURSED      | Spending from a non-disbursed allocation
                | INVALID_ALLOCATION_TRANSITION | Status change not in transition table
                | ALLOCATION_IMMUTABLE          | Amount change after disbursement
                | ALLOCATION_IN_USE             | Delete blocked by consuming records
                | CONTRACT_NOT_ACTIVE           | Payment against non-active contract
                | INVALID_STATUS                | Unknown or disallowed record status
                | ADVANCE_ALREADY_DEDUCTED      | Second deduction for one advance
----------------|-------------------------------|--------------------------------------
Funds           | INSUFFICIENT_FUNDS            | Balance check failed
----------------|-------------------------------|--------------------------------------
Nothing to do   | NO_PENDING_ENTRIES            | Worker has no pending salary
                | EMPTY_SELECTION               | Bulk pay with no eligible worker
----------------|-------------------------------|--------------------------------------
Validation      | INVALID_AMOUNT                | Amount is zero, negative or malformed
                | INVALID_LEDGER_ENTRY          | Entry fields are inconsistent

===============================================================================
DESIGN DECISIONS
===============================================================================

1. All settlement failures are raised BEFORE the first write, so catching
   one of these never leaves a half-applied settlement in the session.

2. InsufficientFundsError always carries both ``available`` and
   ``requested`` so a UI can explain the failure without a second query.

3. Amounts are stored on exceptions as ``Decimal``; the JSON log formatter
   renders them as strings.
"""

from decimal import Decimal


class FundKernelError(Exception):
    """
    Base exception for all fund kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FUND_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(FundKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """User was not found in the caller's organization."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class WorkerNotFoundError(UserNotFoundError):
    """Worker was not found in the caller's organization."""

    code: str = "WORKER_NOT_FOUND"

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        NotFoundError.__init__(self, f"Worker not found: {worker_id}")
        self.user_id = worker_id


class AllocationNotFoundError(NotFoundError):
    """Fund allocation with given ID was not found."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, allocation_id: str):
        self.allocation_id = allocation_id
        super().__init__(f"Fund allocation not found: {allocation_id}")


class SiteNotFoundError(NotFoundError):
    """Site is missing or does not belong to the organization."""

    code: str = "SITE_NOT_FOUND"

    def __init__(self, site_id: str):
        self.site_id = site_id
        super().__init__(f"Site not found: {site_id}")


class LedgerEntryNotFoundError(NotFoundError):
    """Worker ledger entry with given ID was not found."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry not found: {entry_id}")


class ContractNotFoundError(NotFoundError):
    """Contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class ExpenseNotFoundError(NotFoundError):
    """Expense with given ID was not found."""

    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class BillNotFoundError(NotFoundError):
    """Bill with given ID was not found."""

    code: str = "BILL_NOT_FOUND"

    def __init__(self, bill_id: str):
        self.bill_id = bill_id
        super().__init__(f"Bill not found: {bill_id}")


# Authority


class ForbiddenError(FundKernelError):
    """
    Actor lacks the role or hierarchy position for the operation.

    ``target_id`` is the record or user the actor tried to act on, when
    there is one.
    """

    code: str = "FORBIDDEN"

    def __init__(self, actor_id: str, reason: str, target_id: str | None = None):
        self.actor_id = actor_id
        self.reason = reason
        self.target_id = target_id
        super().__init__(f"Forbidden for actor {actor_id}: {reason}")


# State exceptions


class InvalidStateError(FundKernelError):
    """Base exception for operations attempted on a record in the wrong state."""

    code: str = "INVALID_STATE"


class AllocationNotDisbursedError(InvalidStateError):
    """Fund allocation must be disbursed before any record may draw on it."""

    code: str = "ALLOCATION_NOT_DISBURSED"

    def __init__(self, allocation_id: str, status: str):
        self.allocation_id = allocation_id
        self.status = status
        super().__init__(
            f"Fund allocation {allocation_id} must be disbursed before use "
            f"(current status: {status})"
        )


class InvalidAllocationTransitionError(InvalidStateError):
    """Requested status change is not in the allocation transition table."""

    code: str = "INVALID_ALLOCATION_TRANSITION"

    def __init__(self, allocation_id: str, from_status: str, to_status: str):
        self.allocation_id = allocation_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move fund allocation {allocation_id} "
            f"from '{from_status}' to '{to_status}'"
        )


class AllocationImmutableError(InvalidStateError):
    """Amount of a disbursed allocation cannot change."""

    code: str = "ALLOCATION_IMMUTABLE"

    def __init__(self, allocation_id: str, field: str):
        self.allocation_id = allocation_id
        self.field = field
        super().__init__(
            f"Cannot modify '{field}' of disbursed fund allocation {allocation_id}"
        )


class AllocationInUseError(InvalidStateError):
    """Allocation is referenced by consuming records and cannot be deleted."""

    code: str = "ALLOCATION_IN_USE"

    def __init__(self, allocation_id: str, reference_counts: dict[str, int]):
        self.allocation_id = allocation_id
        self.reference_counts = reference_counts
        refs = ", ".join(f"{k}={v}" for k, v in sorted(reference_counts.items()))
        super().__init__(
            f"Fund allocation {allocation_id} is referenced ({refs}) "
            f"and cannot be deleted"
        )


class ContractNotActiveError(InvalidStateError):
    """Payments can only be recorded against active contracts."""

    code: str = "CONTRACT_NOT_ACTIVE"

    def __init__(self, contract_id: str, status: str):
        self.contract_id = contract_id
        self.status = status
        super().__init__(
            f"Contract {contract_id} must be active to record payments "
            f"(current status: {status})"
        )


class InvalidStatusError(InvalidStateError):
    """Status value is unknown or not allowed for this operation."""

    code: str = "INVALID_STATUS"

    def __init__(self, record_type: str, status: str, allowed: tuple[str, ...]):
        self.record_type = record_type
        self.status = status
        self.allowed = allowed
        super().__init__(
            f"Invalid {record_type} status '{status}'; "
            f"expected one of: {', '.join(allowed)}"
        )


class AdvanceAlreadyDeductedError(InvalidStateError):
    """An advance may be offset by at most one deduction entry."""

    code: str = "ADVANCE_ALREADY_DEDUCTED"

    def __init__(self, advance_id: str, deduction_id: str):
        self.advance_id = advance_id
        self.deduction_id = deduction_id
        super().__init__(
            f"Advance {advance_id} is already offset by deduction {deduction_id}"
        )


# Funds


class InsufficientFundsError(FundKernelError):
    """
    Balance check failed.

    Exactly one of ``allocation_id`` / ``user_id`` identifies the balance
    that was checked (allocation remaining balance or wallet balance).
    """

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        available: Decimal,
        requested: Decimal,
        allocation_id: str | None = None,
        user_id: str | None = None,
    ):
        self.available = available
        self.requested = requested
        self.allocation_id = allocation_id
        self.user_id = user_id
        source = (
            f"fund allocation {allocation_id}"
            if allocation_id is not None
            else f"wallet of user {user_id}"
        )
        super().__init__(
            f"Insufficient funds in {source}: "
            f"available {available}, requested {requested}"
        )


# Nothing to settle


class NoPendingWorkError(FundKernelError):
    """Base exception for settlements with nothing to do."""

    code: str = "NO_PENDING_WORK"


class NoPendingEntriesError(NoPendingWorkError):
    """Worker has no pending salary entries in the requested scope."""

    code: str = "NO_PENDING_ENTRIES"

    def __init__(self, worker_id: str):
        self.worker_id = worker_id
        super().__init__(f"No pending salary entries for worker {worker_id}")


class EmptySelectionError(NoPendingWorkError):
    """Bulk payment selection contains no eligible worker."""

    code: str = "EMPTY_SELECTION"

    def __init__(self, requested_count: int):
        self.requested_count = requested_count
        super().__init__(
            f"No eligible workers with pending salary among "
            f"{requested_count} selected"
        )


# Validation


class ValidationError(FundKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Amount is not a positive two-decimal value."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str = "amount must be positive"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class InvalidLedgerEntryError(ValidationError):
    """Ledger entry fields are inconsistent with its category."""

    code: str = "INVALID_LEDGER_ENTRY"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid ledger entry: {reason}")
