"""
Concurrent settlement and balance updates across independent sessions.

The interleaved tests run on any backend: two sessions take turns, so
SQLite's single writer never blocks.  The threaded test needs real row
locks and only runs against PostgreSQL.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from treasury_kernel.domain.payables import PayableStatus
from treasury_kernel.domain.values import Money
from treasury_kernel.exceptions import (
    ConcurrencyConflictError,
    InsufficientFundsError,
    InvalidStateTransitionError,
)
from treasury_kernel.models.account import Account
from treasury_kernel.selectors.ledger_selector import LedgerSelector
from treasury_kernel.services.account_service import AccountService
from treasury_kernel.services.movement_service import MovementService
from treasury_kernel.services.settlement_service import SettlementService
from treasury_kernel.services.unit_of_work import run_with_retry, unit_of_work


@pytest.fixture
def two_sessions(session_factory):
    first, second = session_factory(), session_factory()
    yield first, second
    first.close()
    second.close()


class TestInterleavedSessions:
    def test_document_is_paid_once(
        self,
        two_sessions,
        make_treasury_account,
        make_fund_request,
        payable_service,
        account_service,
        deterministic_clock,
        full_capability,
    ):
        account = make_treasury_account(balance="1000")
        ref = make_fund_request(amount="300")
        first, second = two_sessions

        SettlementService(first, deterministic_clock).settle(ref, account.id, "Pago", full_capability)
        with pytest.raises(InvalidStateTransitionError):
            SettlementService(second, deterministic_clock).settle(ref, account.id, "Pago", full_capability)

        assert account_service.get_balance(account.id) == Money.of("700", "ARS")
        assert payable_service.get(ref).status is PayableStatus.PAID

    def test_loan_is_repaid_once(
        self,
        two_sessions,
        make_treasury_account,
        movement_service,
        account_service,
        deterministic_clock,
        full_capability,
    ):
        lender = make_treasury_account(balance="1000")
        borrower = make_treasury_account(balance="500")
        transfer = movement_service.transfer(lender.id, borrower.id, "200", "", full_capability)
        first, second = two_sessions

        MovementService(first, deterministic_clock).settle_loan(transfer.transfer_id, full_capability)
        with pytest.raises(InvalidStateTransitionError):
            MovementService(second, deterministic_clock).settle_loan(transfer.transfer_id, full_capability)

        assert account_service.get_balance(lender.id) == Money.of("1000", "ARS")
        assert account_service.get_balance(borrower.id) == Money.of("500", "ARS")

    def test_second_payment_sees_debited_balance(
        self,
        two_sessions,
        make_treasury_account,
        make_fund_request,
        account_service,
        deterministic_clock,
        full_capability,
    ):
        account = make_treasury_account(balance="1000")
        first_ref = make_fund_request(amount="600")
        second_ref = make_fund_request(amount="600")
        first, second = two_sessions
        # Warm the second session's identity map with the pre-payment balance
        assert second.get(Account, account.id).balance == Decimal("1000")

        SettlementService(first, deterministic_clock).settle(first_ref, account.id, "Pago", full_capability)
        with pytest.raises(InsufficientFundsError) as exc_info:
            SettlementService(second, deterministic_clock).settle(second_ref, account.id, "Pago", full_capability)

        assert exc_info.value.available == Decimal("400")
        assert account_service.get_balance(account.id) == Money.of("400", "ARS")

    def test_stale_write_is_a_conflict(
        self,
        two_sessions,
        make_treasury_account,
        deterministic_clock,
        full_capability,
    ):
        account = make_treasury_account(balance="1000")
        first, second = two_sessions
        stale = first.get(Account, account.id)

        MovementService(second, deterministic_clock).withdraw(account.id, "100", "Retiro", full_capability)

        with pytest.raises(ConcurrencyConflictError):
            with unit_of_work(first, "rename_account"):
                stale.name = "Banco renombrado"
                first.flush()

    def test_conflict_is_retried_with_a_fresh_session(
        self,
        two_sessions,
        session_factory,
        make_treasury_account,
        deterministic_clock,
        full_capability,
    ):
        account = make_treasury_account(balance="1000")
        first, second = two_sessions
        stale = first.get(Account, account.id)
        MovementService(second, deterministic_clock).withdraw(account.id, "100", "Retiro", full_capability)
        sessions = iter([first])

        def rename():
            s = next(sessions, None) or session_factory()
            try:
                with unit_of_work(s, "rename_account"):
                    target = stale if s is first else s.get(Account, account.id)
                    target.name = "Banco renombrado"
                    s.flush()
            finally:
                if s is not first:
                    s.close()

        run_with_retry(rename, sleep=lambda seconds: None)

        check = session_factory()
        try:
            renamed = check.get(Account, account.id)
            assert renamed.name == "Banco renombrado"
            assert renamed.balance == Decimal("900")
        finally:
            check.close()


@pytest.mark.postgres
@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL", "").startswith("postgresql"),
    reason="needs PostgreSQL row locks",
)
class TestThreadedSettlement:
    def test_parallel_settlements_debit_exactly_once_each(
        self,
        session_factory,
        make_treasury_account,
        make_fund_request,
        deterministic_clock,
        full_capability,
    ):
        account_id = make_treasury_account(balance="1000").id
        refs = [make_fund_request(amount="100") for _ in range(8)]

        def pay(ref):
            def attempt():
                s = session_factory()
                try:
                    SettlementService(s, deterministic_clock).settle(ref, account_id, "Pago", full_capability)
                    return "paid"
                except InvalidStateTransitionError:
                    return "already_paid"
                finally:
                    s.close()
            return run_with_retry(attempt)

        # Two documents are submitted twice
        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(pay, refs + refs[:2]))

        assert outcomes.count("paid") == 8
        assert outcomes.count("already_paid") == 2

        check = session_factory()
        try:
            assert AccountService(check).get_balance(account_id) == Money.of("200", "ARS")
            assert LedgerSelector(check).reconcile(account_id).is_consistent
        finally:
            check.close()
