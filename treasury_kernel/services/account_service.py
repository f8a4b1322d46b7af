"""
AccountService -- account lifecycle and the only balance mutators.

Responsibility:
    Provisions personal cash boxes and treasury accounts, answers balance
    reads, deletes unused accounts, and exposes the two flush-only balance
    mutators (``apply_debit`` / ``apply_credit``) that SettlementService and
    MovementService pair with a ledger append.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - One personal cash account per (owner, currency).  Existence is a
      plain query; the unique constraint uq_account_owner_currency catches
      the race between two provisioning calls, surfacing as a retryable
      ConcurrencyConflictError.  Re-running is idempotent.
    - No set_balance: balances move only through apply_debit/apply_credit.
    - A debit never takes a balance below zero.
    - No movement is dated before the account's last closure.
    - An account with transactions is never deleted.

Failure modes:
    - AccountNotFoundError, InsufficientFundsError, ClosedPeriodError,
      AccountReferencedError, AuthorizationError, InvalidCurrencyError,
      InvalidAmountError.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select

from treasury_kernel.db.types import to_non_negative_amount, validate_currency
from treasury_kernel.domain.capability import Capability, Permission, require
from treasury_kernel.domain.values import Money
from treasury_kernel.exceptions import (
    AccountReferencedError,
    ClosedPeriodError,
    InsufficientFundsError,
)
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.account import Account, AccountClosure, AccountKind
from treasury_kernel.models.transaction import LedgerTransaction, TransactionDirection
from treasury_kernel.services.base import BaseService
from treasury_kernel.services.ledger_service import LedgerService

logger = get_logger("services.account")

OPENING_BALANCE_DESCRIPTION = "Saldo inicial"


class AccountService(BaseService):
    """
    Account store operations.

    Contract:
        Public operations are one unit of work each.  ``apply_debit``,
        ``apply_credit`` and ``ensure_open`` only flush and must be called
        inside another service's unit of work.
    """

    # =========================================================================
    # Reads
    # =========================================================================

    def get_balance(self, account_id: UUID) -> Money:
        """Current balance of an account."""
        return self._load_account(account_id, for_update=False).money

    def get_account(self, account_id: UUID) -> Account:
        return self._load_account(account_id, for_update=False)

    def find_personal_account(self, owner_ref: str, currency: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.kind == AccountKind.PERSONAL_CASH.value,
                Account.owner_ref == owner_ref,
                Account.currency == validate_currency(currency),
            )
        ).scalars().first()

    # =========================================================================
    # Provisioning
    # =========================================================================

    def ensure_personal_accounts(
        self,
        owner_ref: str,
        currencies: Iterable[str],
    ) -> list[Account]:
        """
        Make sure ``owner_ref`` has one cash box per currency.

        Creates zero-balance accounts only where missing.  Returns the
        accounts for every requested currency, sorted by currency code.
        """
        wanted = sorted({validate_currency(c) for c in currencies})
        with self._unit_of_work("ensure_personal_accounts"):
            accounts = []
            for currency in wanted:
                account = self.find_personal_account(owner_ref, currency)
                if account is None:
                    account = Account(
                        kind=AccountKind.PERSONAL_CASH.value,
                        name=f"Caja {owner_ref} ({currency})",
                        owner_ref=owner_ref,
                        currency=currency,
                        balance=Decimal("0"),
                    )
                    self.session.add(account)
                    self.session.flush()
                    logger.info(
                        "personal_account_created",
                        extra={
                            "account_id": str(account.id),
                            "owner_ref": owner_ref,
                            "currency": currency,
                        },
                    )
                accounts.append(account)
        return accounts

    def open_treasury_account(
        self,
        name: str,
        currency: str,
        capability: Capability,
        opening_balance: Decimal | int | str = Decimal("0"),
    ) -> Account:
        """
        Open a treasury (bank or safe) account.

        A non-zero opening balance is recorded as a Credit transaction in
        the same unit of work, so the ledger invariant holds from the start.
        """
        require(capability, Permission.MANAGE_ACCOUNTS)
        currency = validate_currency(currency)
        opening = to_non_negative_amount(opening_balance)

        with LogContext.bind(actor_id=capability.actor_id, operation="open_treasury_account"):
            with self._unit_of_work("open_treasury_account"):
                account = Account(
                    kind=AccountKind.TREASURY.value,
                    name=name,
                    owner_ref=None,
                    currency=currency,
                    balance=Decimal("0"),
                    created_by_id=capability.actor_id,
                )
                self.session.add(account)
                self.session.flush()

                if opening:
                    now = self._clock.now()
                    self.apply_credit(account, opening, now)
                    LedgerService(self.session, self._clock).append(
                        account.id,
                        TransactionDirection.CREDIT,
                        opening,
                        OPENING_BALANCE_DESCRIPTION,
                        occurred_at=now,
                    )

                logger.info(
                    "treasury_account_opened",
                    extra={
                        "account_id": str(account.id),
                        "currency": currency,
                        "opening_balance": str(opening),
                    },
                )
        return account

    def delete_account(self, account_id: UUID, capability: Capability) -> None:
        """Delete an account that no transaction references."""
        require(capability, Permission.MANAGE_ACCOUNTS)
        with LogContext.bind(actor_id=capability.actor_id, account_id=account_id):
            with self._unit_of_work("delete_account"):
                account = self._load_account(account_id)
                count = self.session.execute(
                    select(func.count())
                    .select_from(LedgerTransaction)
                    .where(LedgerTransaction.account_id == account.id)
                ).scalar_one()
                if count:
                    raise AccountReferencedError(str(account.id), count)

                self.session.execute(
                    delete(AccountClosure).where(AccountClosure.account_id == account.id)
                )
                self.session.delete(account)
                self.session.flush()
                logger.info("account_deleted", extra={"account_id": str(account_id)})

    # =========================================================================
    # Balance mutators (flush-only)
    # =========================================================================

    def ensure_open(self, account: Account, when: datetime) -> None:
        """Refuse movements dated before the account's last closure."""
        if account.closed_through is not None and when < account.closed_through:
            raise ClosedPeriodError(
                str(account.id),
                account.closed_through.isoformat(),
                when.isoformat(),
            )

    def apply_debit(self, account: Account, amount: Decimal, when: datetime) -> None:
        """
        Decrease the balance.

        Raises:
            InsufficientFundsError: If the balance is lower than ``amount``;
                the account is left untouched.
        """
        self.ensure_open(account, when)
        if account.balance < amount:
            raise InsufficientFundsError(
                account_id=str(account.id),
                available=account.balance,
                required=amount,
                currency=account.currency,
            )
        account.balance = account.balance - amount
        self.session.flush()

    def apply_credit(self, account: Account, amount: Decimal, when: datetime) -> None:
        self.ensure_open(account, when)
        account.balance = account.balance + amount
        self.session.flush()
