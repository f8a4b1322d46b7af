"""ORM models. Importing this package registers every table on Base.metadata."""

from treasury_kernel.models.account import Account, AccountClosure, AccountKind
from treasury_kernel.models.budget import BudgetAdditional, ContractorBudget
from treasury_kernel.models.expense import ProjectExpense
from treasury_kernel.models.loan import InternalLoan, LoanStatus
from treasury_kernel.models.payable import (
    RECORD_TYPES,
    CashAdvanceRecord,
    ContractorCertificationRecord,
    FundRequestRecord,
    MonthlySalaryRecord,
    PayableRecord,
)
from treasury_kernel.models.transaction import LedgerTransaction, TransactionDirection

__all__ = [
    "Account",
    "AccountClosure",
    "AccountKind",
    "BudgetAdditional",
    "CashAdvanceRecord",
    "ContractorBudget",
    "ContractorCertificationRecord",
    "FundRequestRecord",
    "InternalLoan",
    "LedgerTransaction",
    "LoanStatus",
    "MonthlySalaryRecord",
    "PayableRecord",
    "ProjectExpense",
    "RECORD_TYPES",
    "TransactionDirection",
]
