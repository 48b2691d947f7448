"""
Fund Kernel - fund allocation and worker-ledger settlement engine

Money flows down an organization's user hierarchy as stateful fund
allocations.  The kernel provides:
- Derived wallet and allocation balances (no stored balances)
- Row-locked balance checks for every spend
- All-or-nothing single-worker and bulk salary settlement
- Advance deduction that can never offset the same advance twice
"""

__version__ = "0.1.0"
