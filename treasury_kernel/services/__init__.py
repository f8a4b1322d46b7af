"""Services for the treasury kernel (write side)."""

from treasury_kernel.services.account_service import AccountService
from treasury_kernel.services.budget_service import BudgetService
from treasury_kernel.services.ledger_service import LedgerService
from treasury_kernel.services.movement_service import (
    CashExpenseResult,
    MovementService,
    TransferResult,
)
from treasury_kernel.services.payable_service import PayableService
from treasury_kernel.services.settlement_service import (
    ReversalResult,
    SettlementResult,
    SettlementService,
)
from treasury_kernel.services.unit_of_work import run_with_retry, unit_of_work

__all__ = [
    "AccountService",
    "BudgetService",
    "CashExpenseResult",
    "LedgerService",
    "MovementService",
    "PayableService",
    "ReversalResult",
    "SettlementResult",
    "SettlementService",
    "TransferResult",
    "run_with_retry",
    "unit_of_work",
]
