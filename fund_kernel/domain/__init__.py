"""Pure domain layer: roles, lifecycles and settlement planning (no I/O)."""

from fund_kernel.domain.allocation import (
    ALLOCATION_TRANSITIONS,
    AllocationPurpose,
    AllocationStatus,
)
from fund_kernel.domain.authority import Actor, Role
from fund_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fund_kernel.domain.ledger import (
    EntryStatus,
    EntryType,
    LedgerCategory,
    PaymentMode,
)
from fund_kernel.domain.settlement import (
    BatchSettlementPlan,
    BulkSettlementSummary,
    SettlementSummary,
    WorkerSettlementPlan,
    plan_worker_settlement,
)

__all__ = [
    "ALLOCATION_TRANSITIONS",
    "AllocationPurpose",
    "AllocationStatus",
    "Actor",
    "Role",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "EntryStatus",
    "EntryType",
    "LedgerCategory",
    "PaymentMode",
    "BatchSettlementPlan",
    "BulkSettlementSummary",
    "SettlementSummary",
    "WorkerSettlementPlan",
    "plan_worker_settlement",
]
