"""
MovementService -- manual cash and treasury movements.

Responsibility:
    Operator-initiated movements that are not tied to a payable document:
    deposits and withdrawals ("ingreso"/"egreso"), internal transfers
    between accounts (each one an internal loan that can later be repaid),
    cash-funded project expenses, compensating deletes of any of those, and
    weekly closures.

Architecture position:
    Kernel > Services -- imperative shell.  Same building blocks as
    SettlementService: AccountService balance mutators paired with
    LedgerService appends in one unit of work.

Invariants enforced:
    - Balance equals the signed sum of transactions after every operation.
    - A transfer is two transactions sharing a transfer_id, in the same
      currency, both written or neither, together with a PENDING
      InternalLoan.  Repaying the loan writes the reverse transfer and marks
      the loan SETTLED, once.
    - The legs of a repaid loan are not deleted until the repayment is;
      deleting the repayment reopens the loan.
    - A cash expense is a Debit plus a mirrored ProjectExpense.
    - Movements that settle a payable document are never deleted here;
      SettlementService.revert_settlement owns them.
    - After a closure at time T, nothing dated before T is recorded or
      deleted on that account.

Failure modes:
    - InsufficientFundsError, CurrencyMismatchError, SameAccountTransferError,
      ClosedPeriodError, LinkedTransactionError, TransactionNotFoundError,
      AccountNotFoundError, LoanNotFoundError, InvalidStateTransitionError,
      AuthorizationError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from treasury_kernel.db.types import to_amount
from treasury_kernel.domain.capability import Capability, Permission, require
from treasury_kernel.domain.clock import Clock
from treasury_kernel.domain.policies import ExpenseMirrorPolicy
from treasury_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidStateTransitionError,
    LinkedTransactionError,
    LoanNotFoundError,
    SameAccountTransferError,
    TransactionNotFoundError,
)
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.account import AccountClosure
from treasury_kernel.models.expense import ProjectExpense
from treasury_kernel.models.loan import InternalLoan, LoanStatus
from treasury_kernel.models.transaction import LedgerTransaction, TransactionDirection
from treasury_kernel.services.account_service import AccountService
from treasury_kernel.services.base import BaseService
from treasury_kernel.services.ledger_service import LedgerService

logger = get_logger("services.movement")


@dataclass(frozen=True)
class TransferResult:
    transfer_id: UUID
    debit_transaction_id: UUID
    credit_transaction_id: UUID


@dataclass(frozen=True)
class CashExpenseResult:
    transaction_id: UUID
    expense_id: UUID


class MovementService(BaseService):
    """Deposits, withdrawals, transfers and loan repayments, cash expenses and closures."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        auto_commit: bool = True,
        expense_policy: ExpenseMirrorPolicy | None = None,
    ):
        super().__init__(session, clock, auto_commit=auto_commit)
        self._expense_policy = expense_policy or ExpenseMirrorPolicy()
        self._accounts = AccountService(session, self._clock)
        self._ledger = LedgerService(session, self._clock)

    # =========================================================================
    # Single-account movements
    # =========================================================================

    def deposit(
        self,
        account_id: UUID,
        amount: Decimal | int | str,
        description: str,
        capability: Capability,
        *,
        category: str | None = None,
        occurred_at: datetime | None = None,
    ) -> UUID:
        """Record money coming into an account.  Returns the transaction id."""
        return self._move(
            TransactionDirection.CREDIT, account_id, amount, description,
            capability, category, occurred_at,
        )

    def withdraw(
        self,
        account_id: UUID,
        amount: Decimal | int | str,
        description: str,
        capability: Capability,
        *,
        category: str | None = None,
        occurred_at: datetime | None = None,
    ) -> UUID:
        """Record money leaving an account.  Returns the transaction id."""
        return self._move(
            TransactionDirection.DEBIT, account_id, amount, description,
            capability, category, occurred_at,
        )

    def _move(
        self,
        direction: TransactionDirection,
        account_id: UUID,
        amount: Decimal | int | str,
        description: str,
        capability: Capability,
        category: str | None,
        occurred_at: datetime | None,
    ) -> UUID:
        require(capability, Permission.RECORD_MOVEMENT)
        value = to_amount(amount)
        when = occurred_at or self._clock.now()

        with LogContext.bind(actor_id=capability.actor_id, account_id=account_id, operation=direction.value):
            with self._unit_of_work(f"movement_{direction.value}"):
                account = self._load_account(account_id)
                if direction is TransactionDirection.DEBIT:
                    self._accounts.apply_debit(account, value, when)
                else:
                    self._accounts.apply_credit(account, value, when)
                transaction_id = self._ledger.append(
                    account.id, direction, value, description,
                    category=category, occurred_at=when,
                )
                logger.info(
                    "movement_recorded",
                    extra={
                        "transaction_id": str(transaction_id),
                        "direction": direction.value,
                        "amount": str(value),
                        "currency": account.currency,
                    },
                )
        return transaction_id

    # =========================================================================
    # Transfers
    # =========================================================================

    def transfer(
        self,
        source_id: UUID,
        destination_id: UUID,
        amount: Decimal | int | str,
        description: str,
        capability: Capability,
    ) -> TransferResult:
        """
        Lend money from one account to another of the same currency.

        Writes both legs and opens a PENDING InternalLoan under the same
        transfer_id; ``settle_loan`` repays it.
        """
        require(capability, Permission.RECORD_MOVEMENT)
        if source_id == destination_id:
            raise SameAccountTransferError(str(source_id))
        value = to_amount(amount)

        with LogContext.bind(actor_id=capability.actor_id, operation="transfer"):
            with self._unit_of_work("transfer"):
                source, destination = self._lock_pair(source_id, destination_id)
                if source.currency != destination.currency:
                    raise CurrencyMismatchError(source.currency, destination.currency)

                now = self._clock.now()
                self._accounts.apply_debit(source, value, now)
                self._accounts.apply_credit(destination, value, now)

                suffix = f": {description}" if description else ""
                lent_description = f"Préstamo a {destination.name}{suffix}"
                transfer_id = uuid4()
                debit_id = self._ledger.append(
                    source.id, TransactionDirection.DEBIT, value,
                    lent_description,
                    category="transfer", transfer_id=transfer_id, occurred_at=now,
                )
                credit_id = self._ledger.append(
                    destination.id, TransactionDirection.CREDIT, value,
                    f"Préstamo desde {source.name}{suffix}",
                    category="transfer", transfer_id=transfer_id, occurred_at=now,
                )
                self.session.add(
                    InternalLoan(
                        transfer_id=transfer_id,
                        lender_account_id=source.id,
                        borrower_account_id=destination.id,
                        amount=value,
                        currency=source.currency,
                        description=lent_description,
                        status=LoanStatus.PENDING.value,
                        created_by_id=capability.actor_id,
                    )
                )
                self.session.flush()
                logger.info(
                    "transfer_recorded",
                    extra={
                        "transfer_id": str(transfer_id),
                        "source_id": str(source.id),
                        "destination_id": str(destination.id),
                        "amount": str(value),
                        "currency": source.currency,
                    },
                )
        return TransferResult(transfer_id, debit_id, credit_id)

    def settle_loan(self, transfer_id: UUID, capability: Capability) -> TransferResult:
        """
        Repay the internal loan opened by ``transfer_id``.

        The borrower pays the full amount back to the lender as a new pair
        of legs ("Devolución préstamo"), and the loan is marked SETTLED.
        Returns the repayment transfer, debit leg on the borrower.

        Raises:
            LoanNotFoundError: No loan was opened by that transfer.
            InvalidStateTransitionError: The loan is already settled.
            InsufficientFundsError: The borrower cannot cover the amount.
        """
        require(capability, Permission.RECORD_MOVEMENT)
        with LogContext.bind(actor_id=capability.actor_id, operation="settle_loan"):
            with self._unit_of_work("settle_loan"):
                loan = self._load_loan(InternalLoan.transfer_id == transfer_id)
                if loan is None:
                    raise LoanNotFoundError(str(transfer_id))
                if loan.is_settled:
                    raise InvalidStateTransitionError(
                        "internal_loan", str(loan.id), loan.status, "settle"
                    )

                borrower, lender = self._lock_pair(loan.borrower_account_id, loan.lender_account_id)
                now = self._clock.now()
                self._accounts.apply_debit(borrower, loan.amount, now)
                self._accounts.apply_credit(lender, loan.amount, now)

                repayment_description = f"Devolución préstamo: {loan.description}"
                repayment_id = uuid4()
                debit_id = self._ledger.append(
                    borrower.id, TransactionDirection.DEBIT, loan.amount,
                    repayment_description,
                    category="loan_repayment", transfer_id=repayment_id, occurred_at=now,
                )
                credit_id = self._ledger.append(
                    lender.id, TransactionDirection.CREDIT, loan.amount,
                    repayment_description,
                    category="loan_repayment", transfer_id=repayment_id, occurred_at=now,
                )

                loan.status = LoanStatus.SETTLED.value
                loan.settled_at = now
                loan.repayment_transfer_id = repayment_id
                loan.updated_by_id = capability.actor_id
                self.session.flush()
                logger.info(
                    "loan_settled",
                    extra={
                        "loan_id": str(loan.id),
                        "transfer_id": str(transfer_id),
                        "repayment_transfer_id": str(repayment_id),
                        "amount": str(loan.amount),
                        "currency": loan.currency,
                    },
                )
        return TransferResult(repayment_id, debit_id, credit_id)

    def _lock_pair(self, first_id: UUID, second_id: UUID):
        # Lock in id order so two opposite transfers cannot deadlock
        ordered = sorted([first_id, second_id], key=str)
        locked = {account_id: self._load_account(account_id) for account_id in ordered}
        return locked[first_id], locked[second_id]

    def _load_loan(self, criterion) -> InternalLoan | None:
        return self.session.execute(
            select(InternalLoan)
            .where(criterion)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()

    # =========================================================================
    # Cash expenses
    # =========================================================================

    def record_cash_expense(
        self,
        account_id: UUID,
        project_ref: str,
        amount: Decimal | int | str,
        description: str,
        capability: Capability,
        *,
        supplier_ref: str | None = None,
        category_code: str | None = None,
        expense_date: date | None = None,
    ) -> CashExpenseResult:
        """Pay a project cost straight out of a cash box."""
        require(capability, Permission.RECORD_MOVEMENT)
        value = to_amount(amount)
        policy = self._expense_policy

        with LogContext.bind(actor_id=capability.actor_id, account_id=account_id, operation="cash_expense"):
            with self._unit_of_work("record_cash_expense"):
                account = self._load_account(account_id)
                now = self._clock.now()
                self._accounts.apply_debit(account, value, now)
                transaction_id = self._ledger.append(
                    account.id, TransactionDirection.DEBIT, value, description,
                    category="project_expense", occurred_at=now,
                )
                expense = ProjectExpense(
                    id=uuid4(),
                    project_ref=project_ref,
                    expense_date=expense_date or now.date(),
                    supplier_ref=supplier_ref,
                    category_code=category_code or policy.cash_expense_category,
                    amount=value,
                    currency=account.currency,
                    exchange_rate=Decimal("1"),
                    description=description,
                    document_type=policy.document_type,
                    payment_source=policy.cash_payment_source,
                    transaction_id=transaction_id,
                )
                self.session.add(expense)
                self.session.flush()
                logger.info(
                    "cash_expense_recorded",
                    extra={
                        "transaction_id": str(transaction_id),
                        "expense_id": str(expense.id),
                        "project_ref": project_ref,
                        "amount": str(value),
                    },
                )
        return CashExpenseResult(transaction_id, expense.id)

    def delete_cash_expense(self, transaction_id: UUID, capability: Capability) -> None:
        """
        Undo a cash expense: re-credit, drop the expense and the transaction.

        Raises:
            TransactionNotFoundError: No project expense mirrors the
                transaction (unknown id, or a deposit or transfer leg).
        """
        require(capability, Permission.RECORD_MOVEMENT)
        expense_id = self.session.scalar(
            select(ProjectExpense.id).where(ProjectExpense.transaction_id == transaction_id).limit(1)
        )
        if expense_id is None:
            raise TransactionNotFoundError(str(transaction_id))
        self.delete_movement(transaction_id, capability)

    # =========================================================================
    # Compensating delete
    # =========================================================================

    def delete_movement(self, transaction_id: UUID, capability: Capability) -> None:
        """
        Delete a manual movement and undo its balance effect.

        Both legs of a transfer go together, with the loan it opened.
        Deleting a loan repayment reopens the loan; the original legs of a
        repaid loan are refused.  Any mirrored project expense is deleted
        first.  Movements that settle a payable are refused.
        """
        require(capability, Permission.RECORD_MOVEMENT)
        with LogContext.bind(actor_id=capability.actor_id, operation="delete_movement"):
            with self._unit_of_work("delete_movement"):
                transaction = self._ledger.get(transaction_id)
                if transaction.related_document_id is not None:
                    raise LinkedTransactionError(
                        str(transaction.id),
                        f"{transaction.related_document_kind}/{transaction.related_document_id}",
                    )

                legs = [transaction]
                opened_loan = repaid_loan = None
                if transaction.transfer_id is not None:
                    opened_loan = self._load_loan(InternalLoan.transfer_id == transaction.transfer_id)
                    if opened_loan is not None and opened_loan.is_settled:
                        raise LinkedTransactionError(
                            str(transaction.id),
                            f"internal_loan/{opened_loan.id}",
                            remedy="delete the repayment first",
                        )
                    repaid_loan = self._load_loan(
                        InternalLoan.repayment_transfer_id == transaction.transfer_id
                    )
                    legs = list(
                        self.session.execute(
                            select(LedgerTransaction)
                            .where(LedgerTransaction.transfer_id == transaction.transfer_id)
                            .order_by(LedgerTransaction.account_id)
                        ).scalars()
                    )

                now = self._clock.now()
                for leg in legs:
                    account = self._load_account(leg.account_id)
                    self._accounts.ensure_open(account, leg.occurred_at)
                    # Undo: a debit is credited back, a credit is debited back
                    if leg.direction == TransactionDirection.DEBIT.value:
                        self._accounts.apply_credit(account, leg.amount, now)
                    else:
                        self._accounts.apply_debit(account, leg.amount, now)

                    for expense in self.session.execute(
                        select(ProjectExpense).where(ProjectExpense.transaction_id == leg.id)
                    ).scalars():
                        self.session.delete(expense)
                    self.session.flush()
                    self._ledger.remove(leg.id)

                if opened_loan is not None:
                    self.session.delete(opened_loan)
                if repaid_loan is not None:
                    repaid_loan.status = LoanStatus.PENDING.value
                    repaid_loan.settled_at = None
                    repaid_loan.repayment_transfer_id = None
                    repaid_loan.updated_by_id = capability.actor_id
                self.session.flush()

                logger.info(
                    "movement_deleted",
                    extra={
                        "transaction_id": str(transaction_id),
                        "legs": len(legs),
                    },
                )

    # =========================================================================
    # Closures
    # =========================================================================

    def close_account_period(
        self,
        account_id: UUID,
        capability: Capability,
        notes: str = "",
    ) -> UUID:
        """
        Record a weekly closure ("cierre de caja") at the current time.

        Returns the closure id.  From now on, movements dated earlier are
        refused on this account.
        """
        require(capability, Permission.RECORD_MOVEMENT)
        with LogContext.bind(actor_id=capability.actor_id, account_id=account_id, operation="close_period"):
            with self._unit_of_work("close_account_period"):
                account = self._load_account(account_id)
                now = self._clock.now()
                self._accounts.ensure_open(account, now)
                closure = AccountClosure(
                    id=uuid4(),
                    account_id=account.id,
                    closed_at=now,
                    balance=account.balance,
                    notes=notes,
                    created_by_id=capability.actor_id,
                )
                self.session.add(closure)
                account.closed_through = now
                self.session.flush()
                logger.info(
                    "account_period_closed",
                    extra={
                        "closure_id": str(closure.id),
                        "balance": str(account.balance),
                        "currency": account.currency,
                    },
                )
        return closure.id
