"""
LedgerService: append-only transaction rows.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from treasury_kernel.exceptions import (
    AccountNotFoundError,
    ImmutabilityViolationError,
    InvalidAmountError,
    TransactionNotFoundError,
)
from treasury_kernel.models.transaction import TransactionDirection


class TestAppend:
    def test_append_uses_account_currency(self, ledger_service, make_treasury_account, deterministic_clock):
        account = make_treasury_account(balance="0", currency="USD")

        transaction_id = ledger_service.append(
            account.id, TransactionDirection.CREDIT, "25.50", "Ingreso", category="deposit"
        )

        row = ledger_service.get(transaction_id)
        assert row.currency == "USD"
        assert row.amount == Decimal("25.50")
        assert row.direction == "credit"
        assert row.occurred_at == deterministic_clock.now()
        assert row.related_document_id is None

    def test_non_positive_amount(self, ledger_service, make_treasury_account):
        account = make_treasury_account(balance="0")

        with pytest.raises(InvalidAmountError):
            ledger_service.append(account.id, TransactionDirection.DEBIT, "0", "Nada")

    def test_unknown_account(self, ledger_service):
        with pytest.raises(AccountNotFoundError):
            ledger_service.append(uuid4(), TransactionDirection.DEBIT, "1", "x")


class TestImmutability:
    def test_update_is_refused(self, ledger_service, make_treasury_account, session):
        account = make_treasury_account(balance="10")
        transaction_id = ledger_service.append(account.id, TransactionDirection.CREDIT, "5", "Ingreso")

        row = ledger_service.get(transaction_id)
        row.description = "Edited"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_remove_deletes_row(self, ledger_service, make_treasury_account):
        account = make_treasury_account(balance="10")
        transaction_id = ledger_service.append(account.id, TransactionDirection.CREDIT, "5", "Ingreso")

        ledger_service.remove(transaction_id)

        with pytest.raises(TransactionNotFoundError):
            ledger_service.get(transaction_id)

    def test_remove_unknown(self, ledger_service):
        with pytest.raises(TransactionNotFoundError):
            ledger_service.remove(uuid4())
