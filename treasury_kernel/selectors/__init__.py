"""Selectors for the treasury kernel (read side)."""

from treasury_kernel.selectors.budget_selector import BudgetSelector, BudgetStatus
from treasury_kernel.selectors.ledger_selector import (
    LedgerSelector,
    ReconciliationResult,
    TransactionHistory,
    TransactionView,
)
from treasury_kernel.selectors.payment_queue import (
    PaymentQueue,
    PaymentQueueItem,
    UnifiedPaymentAggregator,
)

__all__ = [
    "BudgetSelector",
    "BudgetStatus",
    "LedgerSelector",
    "PaymentQueue",
    "PaymentQueueItem",
    "ReconciliationResult",
    "TransactionHistory",
    "TransactionView",
    "UnifiedPaymentAggregator",
]
