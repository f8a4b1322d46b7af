"""
Module: treasury_kernel.selectors.ledger_selector
Responsibility: Read side of the transaction ledger: per-account history,
    internal loans and reconciliation of stored balances against the signed
    transaction sum.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - History order is occurred_at descending, ties broken by transaction
      id ascending, so paging and re-iteration are deterministic.
    - TransactionHistory is lazy and restartable: every ``iter()`` issues a
      fresh query, so a second pass sees the same rows (or newer ones).
    - reconcile() only reports.  It never writes a balance back.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from treasury_kernel.domain.payables import DocumentRef, PayableKind
from treasury_kernel.domain.values import Money
from treasury_kernel.exceptions import AccountNotFoundError
from treasury_kernel.models.account import Account
from treasury_kernel.models.loan import InternalLoan, LoanStatus
from treasury_kernel.models.transaction import LedgerTransaction, TransactionDirection
from treasury_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TransactionView:
    """Read-only projection of a LedgerTransaction."""

    id: UUID
    account_id: UUID
    occurred_at: datetime
    direction: TransactionDirection
    amount: Money
    description: str
    category: str | None
    related_document_ref: DocumentRef | None
    transfer_id: UUID | None
    original_amount: Money | None
    exchange_rate: Decimal | None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount.amount * self.direction.sign

    @classmethod
    def from_row(cls, row: LedgerTransaction) -> TransactionView:
        ref = None
        if row.related_document_kind and row.related_document_id:
            ref = DocumentRef(kind=PayableKind(row.related_document_kind), id=row.related_document_id)
        original = None
        if row.original_amount is not None and row.original_currency:
            original = Money(amount=row.original_amount, currency=row.original_currency)
        return cls(
            id=row.id,
            account_id=row.account_id,
            occurred_at=row.occurred_at,
            direction=TransactionDirection(row.direction),
            amount=Money(amount=row.amount, currency=row.currency),
            description=row.description,
            category=row.category,
            related_document_ref=ref,
            transfer_id=row.transfer_id,
            original_amount=original,
            exchange_rate=row.exchange_rate,
        )


@dataclass(frozen=True)
class LoanView:
    """Read-only projection of an InternalLoan."""

    id: UUID
    transfer_id: UUID
    lender_account_id: UUID
    borrower_account_id: UUID
    amount: Money
    description: str
    status: LoanStatus
    settled_at: datetime | None
    repayment_transfer_id: UUID | None

    @classmethod
    def from_row(cls, row: InternalLoan) -> LoanView:
        return cls(
            id=row.id,
            transfer_id=row.transfer_id,
            lender_account_id=row.lender_account_id,
            borrower_account_id=row.borrower_account_id,
            amount=Money(amount=row.amount, currency=row.currency),
            description=row.description,
            status=LoanStatus(row.status),
            settled_at=row.settled_at,
            repayment_transfer_id=row.repayment_transfer_id,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """Stored balance compared with the signed sum of transactions."""

    account_id: UUID
    currency: str
    stored_balance: Decimal
    computed_balance: Decimal
    transaction_count: int

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.computed_balance

    @property
    def is_consistent(self) -> bool:
        return self.difference == 0


class TransactionHistory:
    """
    Lazy, restartable view over one account's transactions.

    Nothing is queried until iteration starts; each iteration runs the query
    again and streams rows in batches.
    """

    BATCH_SIZE = 200

    def __init__(
        self,
        session: Session,
        account_id: UUID,
        since: datetime | None = None,
        until: datetime | None = None,
    ):
        self._session = session
        self._account_id = account_id
        self._since = since
        self._until = until

    def _statement(self):
        stmt = select(LedgerTransaction).where(LedgerTransaction.account_id == self._account_id)
        if self._since is not None:
            stmt = stmt.where(LedgerTransaction.occurred_at >= self._since)
        if self._until is not None:
            stmt = stmt.where(LedgerTransaction.occurred_at < self._until)
        return stmt.order_by(
            LedgerTransaction.occurred_at.desc(),
            LedgerTransaction.id.asc(),
        )

    def __iter__(self) -> Iterator[TransactionView]:
        result = self._session.execute(
            self._statement().execution_options(yield_per=self.BATCH_SIZE)
        )
        for row in result.scalars():
            yield TransactionView.from_row(row)


class LedgerSelector(BaseSelector):
    """Transaction history and balance reconciliation."""

    def _account(self, account_id: UUID) -> Account:
        # Refresh from the database; the identity map may hold a row another
        # session has since updated
        account = self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def list_for_account(
        self,
        account_id: UUID,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> TransactionHistory:
        """
        Transactions of one account, newest first.

        ``since`` is inclusive and ``until`` exclusive.

        Raises:
            AccountNotFoundError: If the account does not exist.
        """
        self._account(account_id)
        return TransactionHistory(self.session, account_id, since, until)

    def get_transaction(self, transaction_id: UUID) -> TransactionView | None:
        row = self.session.get(LedgerTransaction, transaction_id)
        return TransactionView.from_row(row) if row is not None else None

    def settlement_transactions(self, ref: DocumentRef) -> list[TransactionView]:
        """Every transaction linked to a payable document (0 or 1 when consistent)."""
        rows = self.session.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.related_document_kind == ref.kind.value,
                LedgerTransaction.related_document_id == ref.id,
            )
        ).scalars()
        return [TransactionView.from_row(r) for r in rows]

    def get_loan(self, transfer_id: UUID) -> LoanView | None:
        row = self.session.execute(
            select(InternalLoan)
            .where(InternalLoan.transfer_id == transfer_id)
            .execution_options(populate_existing=True)
        ).scalars().first()
        return LoanView.from_row(row) if row is not None else None

    def pending_loans(self, account_id: UUID | None = None) -> list[LoanView]:
        """Unpaid internal loans, oldest first; ``account_id`` matches either side."""
        stmt = select(InternalLoan).where(InternalLoan.status == LoanStatus.PENDING.value)
        if account_id is not None:
            stmt = stmt.where(
                or_(
                    InternalLoan.lender_account_id == account_id,
                    InternalLoan.borrower_account_id == account_id,
                )
            )
        rows = self.session.execute(
            stmt.order_by(InternalLoan.created_at, InternalLoan.id)
            .execution_options(populate_existing=True)
        ).scalars()
        return [LoanView.from_row(r) for r in rows]

    def reconcile(self, account_id: UUID) -> ReconciliationResult:
        """Recompute the signed transaction sum and compare with the balance."""
        account = self._account(account_id)
        amounts = self.session.execute(
            select(LedgerTransaction.direction, LedgerTransaction.amount).where(
                LedgerTransaction.account_id == account_id
            )
        ).all()
        # Summed in Python: SQLite stores amounts as text
        computed = sum(
            (amount * TransactionDirection(direction).sign for direction, amount in amounts),
            Decimal("0"),
        )
        return ReconciliationResult(
            account_id=account.id,
            currency=account.currency,
            stored_balance=account.balance,
            computed_balance=computed,
            transaction_count=len(amounts),
        )

    def reconcile_all(self) -> list[ReconciliationResult]:
        ids = self.session.execute(select(Account.id).order_by(Account.id)).scalars().all()
        return [self.reconcile(account_id) for account_id in ids]
