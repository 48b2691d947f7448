"""Read-only selectors.  Every balance is derived on each call."""

from fund_kernel.selectors.allocation_selector import (
    AllocationInfo,
    AllocationSelector,
    FlowSummary,
)
from fund_kernel.selectors.balance_selector import (
    AllocationBalance,
    AvailabilityCheck,
    BalanceSelector,
    SpendBreakdown,
    WalletBalance,
)
from fund_kernel.selectors.hierarchy_selector import HierarchySelector, UserInfo
from fund_kernel.selectors.ledger_selector import (
    LedgerEntryInfo,
    LedgerSelector,
    WorkerBalance,
)

__all__ = [
    "AllocationInfo",
    "AllocationSelector",
    "FlowSummary",
    "AllocationBalance",
    "AvailabilityCheck",
    "BalanceSelector",
    "SpendBreakdown",
    "WalletBalance",
    "HierarchySelector",
    "UserInfo",
    "LedgerEntryInfo",
    "LedgerSelector",
    "WorkerBalance",
]
