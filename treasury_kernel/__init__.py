"""
Treasury Kernel - multi-account ledger and payment settlement.

A small, transactional core for a construction back office:
- Named accounts (personal cash boxes, treasury accounts) with running balances
- Append-only transaction ledger that balances reconcile against
- Payable document life-cycle (advances, certifications, fund requests, salaries)
- Atomic settlement and reversal
- Unified queue of approved payables for treasury operators
"""

__version__ = "0.1.0"
