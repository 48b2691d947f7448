"""
ORM models.  Importing this package registers every table on Base.metadata.
"""

from fund_kernel.models.contract import Contract
from fund_kernel.models.fund_allocation import FundAllocation
from fund_kernel.models.organization import Organization, Site, User
from fund_kernel.models.spend import Bill, Expense
from fund_kernel.models.worker_ledger import WorkerLedgerEntry

__all__ = [
    "Organization",
    "User",
    "Site",
    "FundAllocation",
    "WorkerLedgerEntry",
    "Expense",
    "Bill",
    "Contract",
]
