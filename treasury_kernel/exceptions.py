"""
Typed exception hierarchy for the treasury kernel.

Every error is a class with a machine-readable ``code`` class attribute and
structured attributes, so callers catch by type and report by field instead
of parsing message strings::

    try:
        settlement.settle(ref, account_id, "Pago semanal", capability=cap)
    except InsufficientFundsError as e:
        show_error(e.code, available=e.available, required=e.required)

Each class also declares ``retryable``.  Only conflicts and storage failures
are retryable; everything else is a business-rule rejection that will fail
the same way on a second attempt.

Hierarchy::

    TreasuryKernelError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- BudgetNotFoundError
    |   +-- LoanNotFoundError
    |
    +-- InvalidStateTransitionError
    +-- InsufficientFundsError
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- AccountError
    |   +-- AccountReferencedError
    |   +-- ClosedPeriodError
    |   +-- SameAccountTransferError
    |
    +-- LinkedTransactionError
    |
    +-- InvalidAmountError
    +-- InvalidPeriodError
    +-- ImmutabilityViolationError
    +-- ConstraintViolationError
    +-- AuthorizationError
    +-- ConcurrencyConflictError      (retryable)
    +-- StorageUnavailableError       (retryable)

Codes:

    NOT_FOUND                 | generic lookup miss
    ACCOUNT_NOT_FOUND         | account id doesn't exist
    DOCUMENT_NOT_FOUND        | payable document doesn't exist
    TRANSACTION_NOT_FOUND     | transaction id doesn't exist
    BUDGET_NOT_FOUND          | no budget for contractor/project
    LOAN_NOT_FOUND            | transfer id has no internal loan
    INVALID_STATE_TRANSITION  | status guard violated (documents, loans)
    INSUFFICIENT_FUNDS        | balance lower than the amount to debit
    INVALID_CURRENCY          | currency not supported by the ledger
    CURRENCY_MISMATCH         | account and document currencies differ, no rate
    ACCOUNT_REFERENCED        | account still has transactions
    CLOSED_PERIOD             | movement dated before the account's last closure
    SAME_ACCOUNT_TRANSFER     | transfer source and destination are equal
    LINKED_TRANSACTION        | movement is owned by a settlement or a repaid loan
    INVALID_AMOUNT            | amount is zero, negative or not a number
    INVALID_PERIOD            | payroll period is not a YYYY-MM month
    IMMUTABILITY_VIOLATION    | update attempted on an append-only row
    CONSTRAINT_VIOLATION      | check or foreign-key constraint rejected a write
    NOT_AUTHORIZED            | capability does not grant the permission
    CONFLICT                  | concurrent modification lost the race
    STORAGE_UNAVAILABLE       | transient database failure
"""

from __future__ import annotations

from decimal import Decimal


class TreasuryKernelError(Exception):
    """
    Base exception for all treasury kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification and a ``retryable`` flag.
    """

    code: str = "TREASURY_KERNEL_ERROR"
    retryable: bool = False


# Lookup errors


class NotFoundError(TreasuryKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class DocumentNotFoundError(NotFoundError):
    """Payable document was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, kind: str, document_id: str):
        self.kind = kind
        self.document_id = document_id
        super().__init__(f"{kind} not found: {document_id}")


class TransactionNotFoundError(NotFoundError):
    """Ledger transaction was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class BudgetNotFoundError(NotFoundError):
    """No budget is configured for the contractor/project pair."""

    code: str = "BUDGET_NOT_FOUND"

    def __init__(self, contractor_ref: str, project_ref: str):
        self.contractor_ref = contractor_ref
        self.project_ref = project_ref
        super().__init__(
            f"No budget for contractor {contractor_ref} on project {project_ref}"
        )


class LoanNotFoundError(NotFoundError):
    """No internal loan was recorded for the transfer."""

    code: str = "LOAN_NOT_FOUND"

    def __init__(self, transfer_id: str):
        self.transfer_id = transfer_id
        super().__init__(f"No internal loan for transfer {transfer_id}")


# Life-cycle errors


class InvalidStateTransitionError(TreasuryKernelError):
    """A status guard was violated on a payable document or an internal loan."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        kind: str,
        document_id: str,
        from_status: str,
        to_status: str,
    ):
        self.kind = kind
        self.document_id = document_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move {kind} {document_id} from {from_status} to {to_status}"
        )


# Funds


class InsufficientFundsError(TreasuryKernelError):
    """Account balance is lower than the amount to debit."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        account_id: str,
        available: Decimal,
        required: Decimal,
        currency: str,
    ):
        self.account_id = account_id
        self.available = available
        self.required = required
        self.currency = currency
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"available {available} {currency}, required {required} {currency}"
        )


# Currency errors


class CurrencyError(TreasuryKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not supported by the ledger."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: '{currency}'")


class CurrencyMismatchError(CurrencyError):
    """Two amounts or an account and a document disagree on currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, account_currency: str, document_currency: str):
        self.account_currency = account_currency
        self.document_currency = document_currency
        super().__init__(
            f"Currency mismatch: {account_currency} vs {document_currency}"
        )


# Account errors


class AccountError(TreasuryKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountReferencedError(AccountError):
    """Account cannot be deleted because transactions reference it."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, transaction_count: int):
        self.account_id = account_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Account {account_id} cannot be deleted: "
            f"{transaction_count} transaction(s) reference it"
        )


class ClosedPeriodError(AccountError):
    """Movement is dated before the account's last closure."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, account_id: str, closed_through: str, attempted: str):
        self.account_id = account_id
        self.closed_through = closed_through
        self.attempted = attempted
        super().__init__(
            f"Account {account_id} is closed through {closed_through}; "
            f"cannot record a movement dated {attempted}"
        )


class SameAccountTransferError(AccountError):
    """Transfer source and destination are the same account."""

    code: str = "SAME_ACCOUNT_TRANSFER"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Cannot transfer from account {account_id} to itself")


class LinkedTransactionError(TreasuryKernelError):
    """
    A movement belongs to something else and cannot be deleted on its own.

    Either it settles a payable document (revert the settlement) or it is a
    leg of an internal loan that was already repaid (delete the repayment).
    """

    code: str = "LINKED_TRANSACTION"

    def __init__(
        self,
        transaction_id: str,
        document_ref: str,
        remedy: str = "revert the settlement instead",
    ):
        self.transaction_id = transaction_id
        self.document_ref = document_ref
        super().__init__(
            f"Transaction {transaction_id} is linked to {document_ref}; {remedy}"
        )


class InvalidAmountError(TreasuryKernelError):
    """Amount must be a positive decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Amount must be a positive decimal, got {amount!r}")


class InvalidPeriodError(TreasuryKernelError):
    """Payroll period is not a valid ``YYYY-MM`` month."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period: object):
        self.period = period
        super().__init__(f"Period must be YYYY-MM, got {period!r}")


class ImmutabilityViolationError(TreasuryKernelError):
    """Attempted to modify a row that is append-only."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is immutable")


class ConstraintViolationError(TreasuryKernelError):
    """
    A check or foreign-key constraint rejected the write.

    Unlike a unique-key race this fails the same way every time, so it is
    not retryable.
    """

    code: str = "CONSTRAINT_VIOLATION"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Constraint violated during {operation}{suffix}")


class AuthorizationError(TreasuryKernelError):
    """The supplied capability does not grant the required permission."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: str, permission: str):
        self.actor_id = actor_id
        self.permission = permission
        super().__init__(f"Actor {actor_id} lacks permission '{permission}'")


# Retryable infrastructure errors


class ConcurrencyConflictError(TreasuryKernelError):
    """A concurrent transaction modified the same row first."""

    code: str = "CONFLICT"
    retryable: bool = True

    def __init__(self, entity_type: str, entity_id: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        target = f"{entity_type} {entity_id}" if entity_id else entity_type
        super().__init__(
            f"Concurrent modification of {target}: "
            "another transaction committed first"
        )


class StorageUnavailableError(TreasuryKernelError):
    """The database could not complete the unit of work."""

    code: str = "STORAGE_UNAVAILABLE"
    retryable: bool = True

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        suffix = f": {detail}" if detail else ""
        super().__init__(f"Storage unavailable during {operation}{suffix}")
