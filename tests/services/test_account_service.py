"""
AccountService: provisioning, opening balances, deletion and the balance mutators.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from treasury_kernel.domain.values import Money
from treasury_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    AuthorizationError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidCurrencyError,
)
from treasury_kernel.models.account import AccountKind


class TestPersonalAccounts:
    def test_one_account_per_currency(self, account_service):
        accounts = account_service.ensure_personal_accounts("user-ana", ["USD", "ARS", "ars"])

        assert [a.currency for a in accounts] == ["ARS", "USD"]
        assert all(a.kind == AccountKind.PERSONAL_CASH.value for a in accounts)
        assert all(a.balance == Decimal("0") for a in accounts)
        assert accounts[0].name == "Caja user-ana (ARS)"

    def test_provisioning_is_idempotent(self, account_service):
        first = account_service.ensure_personal_accounts("user-ana", ["ARS"])
        second = account_service.ensure_personal_accounts("user-ana", ["ARS", "USD"])

        assert second[0].id == first[0].id
        assert len(second) == 2

    def test_find_personal_account(self, account_service):
        account_service.ensure_personal_accounts("user-luis", ["USD"])

        assert account_service.find_personal_account("user-luis", "USD") is not None
        assert account_service.find_personal_account("user-luis", "ARS") is None

    def test_unsupported_currency(self, account_service):
        with pytest.raises(InvalidCurrencyError):
            account_service.ensure_personal_accounts("user-ana", ["EUR"])


class TestTreasuryAccounts:
    def test_opening_balance_is_a_credit(self, make_treasury_account, account_service, ledger_selector):
        account = make_treasury_account(balance="1000")

        assert account_service.get_balance(account.id) == Money.of("1000", "ARS")
        history = list(ledger_selector.list_for_account(account.id))
        assert len(history) == 1
        assert history[0].description == "Saldo inicial"
        assert history[0].signed_amount == Decimal("1000")
        assert ledger_selector.reconcile(account.id).is_consistent

    def test_zero_opening_balance_writes_nothing(self, make_treasury_account, ledger_selector):
        account = make_treasury_account(balance="0", currency="USD")

        assert list(ledger_selector.list_for_account(account.id)) == []

    @pytest.mark.parametrize("opening", ["abc", "-10", 12.5])
    def test_malformed_opening_balance(self, account_service, full_capability, opening):
        with pytest.raises(InvalidAmountError):
            account_service.open_treasury_account("Banco", "ARS", full_capability, opening_balance=opening)

    def test_requires_manage_permission(self, account_service, requester_capability):
        with pytest.raises(AuthorizationError):
            account_service.open_treasury_account("Banco", "ARS", requester_capability)

    def test_unknown_account(self, account_service):
        with pytest.raises(AccountNotFoundError):
            account_service.get_balance(uuid4())


class TestDeleteAccount:
    def test_unused_account_is_deleted(self, account_service, make_treasury_account, full_capability):
        account = make_treasury_account(balance="0")
        account_id = account.id

        account_service.delete_account(account_id, full_capability)

        with pytest.raises(AccountNotFoundError):
            account_service.get_account(account_id)

    def test_referenced_account_is_kept(self, account_service, make_treasury_account, full_capability):
        account = make_treasury_account(balance="50")

        with pytest.raises(AccountReferencedError) as exc_info:
            account_service.delete_account(account.id, full_capability)

        assert exc_info.value.transaction_count == 1
        assert account_service.get_balance(account.id) == Money.of("50", "ARS")


class TestBalanceMutators:
    def test_debit_below_zero_leaves_balance(
        self,
        account_service,
        make_treasury_account,
        deterministic_clock,
        session,
    ):
        account = make_treasury_account(balance="100")

        with pytest.raises(InsufficientFundsError) as exc_info:
            account_service.apply_debit(account, Decimal("300"), deterministic_clock.now())

        assert exc_info.value.available == Decimal("100")
        assert account.balance == Decimal("100")
        session.rollback()
