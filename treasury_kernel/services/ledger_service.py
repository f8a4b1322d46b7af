"""
LedgerService -- append-only writer for account transactions.

Responsibility:
    Writes one LedgerTransaction row per money movement.  Appending is a
    pure insert; the caller pairs it with the matching balance change in
    the same unit of work (AccountService.apply_debit / apply_credit).

Architecture position:
    Kernel > Services.  Called by SettlementService, MovementService and
    AccountService; reads go through LedgerSelector.

Invariants enforced:
    - Transactions are never updated (see the before_update listener in
      models/transaction.py).  ``remove`` exists only for compensating
      reversals and deletes the row outright.
    - The transaction currency is always the account currency.

Failure modes:
    - AccountNotFoundError if the account does not exist.
    - InvalidAmountError for a non-positive amount.
    - TransactionNotFoundError from ``remove`` for an unknown id.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from treasury_kernel.db.types import to_amount
from treasury_kernel.domain.payables import DocumentRef
from treasury_kernel.domain.values import ExchangeRate, Money
from treasury_kernel.exceptions import TransactionNotFoundError
from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.transaction import LedgerTransaction, TransactionDirection
from treasury_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService):
    """
    Appends and removes ledger rows.  Flush-only: never commits.

    Non-goals:
        - Does NOT touch account balances.
        - Does NOT list or sum transactions (LedgerSelector does).
    """

    def append(
        self,
        account_id: UUID,
        direction: TransactionDirection,
        amount: Decimal | int | str,
        description: str,
        related_document_ref: DocumentRef | None = None,
        *,
        category: str | None = None,
        transfer_id: UUID | None = None,
        original: Money | None = None,
        exchange_rate: ExchangeRate | None = None,
        occurred_at: datetime | None = None,
    ) -> UUID:
        """
        Append one transaction and return its id.

        ``original`` and ``exchange_rate`` record the document-side amount
        when a settlement converted currencies.
        """
        account = self._load_account(account_id, for_update=False)
        transaction = LedgerTransaction(
            id=uuid4(),
            account_id=account.id,
            occurred_at=occurred_at or self._clock.now(),
            direction=TransactionDirection(direction).value,
            amount=to_amount(amount),
            currency=account.currency,
            description=description,
            category=category,
            related_document_kind=(
                related_document_ref.kind.value if related_document_ref else None
            ),
            related_document_id=related_document_ref.id if related_document_ref else None,
            transfer_id=transfer_id,
            original_amount=original.amount if original else None,
            original_currency=original.currency if original else None,
            exchange_rate=exchange_rate.rate if exchange_rate else None,
        )
        self.session.add(transaction)
        self.session.flush()

        logger.debug(
            "transaction_appended",
            extra={
                "transaction_id": str(transaction.id),
                "account_id": str(account.id),
                "direction": transaction.direction,
                "amount": str(transaction.amount),
                "currency": transaction.currency,
            },
        )
        return transaction.id

    def get(self, transaction_id: UUID) -> LedgerTransaction:
        transaction = self.session.get(LedgerTransaction, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))
        return transaction

    def remove(self, transaction_id: UUID) -> None:
        """Delete a transaction as part of a compensating reversal."""
        transaction = self.get(transaction_id)
        self.session.delete(transaction)
        self.session.flush()
        logger.debug(
            "transaction_removed",
            extra={"transaction_id": str(transaction_id)},
        )
