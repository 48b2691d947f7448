"""
Write-side services.  Every service flushes; the caller owns the commit.
"""

from fund_kernel.services.allocation_service import AllocationService
from fund_kernel.services.contract_service import (
    ContractInfo,
    ContractPayment,
    ContractService,
)
from fund_kernel.services.fund_gate import FundGate
from fund_kernel.services.ledger_service import LedgerService
from fund_kernel.services.settlement_service import SettlementService
from fund_kernel.services.spend_service import BillInfo, ExpenseInfo, SpendService

__all__ = [
    "AllocationService",
    "ContractInfo",
    "ContractPayment",
    "ContractService",
    "FundGate",
    "LedgerService",
    "SettlementService",
    "BillInfo",
    "ExpenseInfo",
    "SpendService",
]
