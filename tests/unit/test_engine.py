"""
Transactional scope helpers in treasury_kernel.db.engine.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from treasury_kernel.db.engine import get_session, session_scope
from treasury_kernel.models.account import Account, AccountKind


def _account(name):
    return Account(
        kind=AccountKind.TREASURY.value,
        name=name,
        owner_ref=None,
        currency="ARS",
        balance=Decimal("0"),
    )


def _count(name):
    with get_session() as check:
        return check.execute(
            select(func.count()).select_from(Account).where(Account.name == name)
        ).scalar_one()


class TestSessionScope:
    def test_commits_on_success(self, session_factory):
        with session_scope() as session:
            session.add(_account("Banco Nación"))

        assert _count("Banco Nación") == 1

    def test_rolls_back_on_error(self, session_factory, captured_logs):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(_account("Caja fuerte"))
                session.flush()
                raise ValueError("boom")

        assert _count("Caja fuerte") == 0
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())

    def test_sessions_are_independent(self, session_factory):
        first = get_session()
        second = get_session()
        try:
            assert first is not second
        finally:
            first.close()
            second.close()
