"""
SettlementService -- the single atomic settlement and reversal operation.

Responsibility:
    Pays an approved payable document from a chosen account and undoes such
    a payment.  Every call site (salary, certification, fund request, cash
    advance) goes through ``settle``; the variant only changes the text on
    the transaction and whether a project expense is mirrored.

Architecture position:
    Kernel > Services -- imperative shell.  Composes AccountService (balance
    mutators) and LedgerService (append/remove) inside one unit of work.

Invariants enforced:
    - Preconditions are checked before any mutation, in this order:
        1. document status is APPROVED    -> InvalidStateTransitionError
        2. currencies match or a rate to
           the account currency is given  -> CurrencyMismatchError
        3. balance covers the amount      -> InsufficientFundsError
    - Effects land together or not at all: balance debit, Debit transaction
      linked to the document, PAID status with its settlement reference, and
      the mirrored expense for contractor certifications.
    - Reversal is the exact inverse: re-credit the amount that was debited,
      delete the transaction and expense, clear the reference, back to
      APPROVED.
    - Two settlements of the same document: the second sees PAID (or loses
      the version race) and fails; the account is debited once.

Failure modes:
    - Business rejections above, plus AuthorizationError.
    - ConcurrencyConflictError / StorageUnavailableError with full rollback.

Audit relevance:
    ``settlement_completed``, ``settlement_rejected`` and
    ``settlement_reverted`` are logged with the document, account, amount
    and actor.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from treasury_kernel.domain.capability import Capability, Permission, require
from treasury_kernel.domain.clock import Clock
from treasury_kernel.domain.payables import (
    DocumentRef,
    PayableAction,
    PayableStatus,
    describe,
    mirrors_expense,
    next_status,
)
from treasury_kernel.domain.policies import ExpenseMirrorPolicy
from treasury_kernel.domain.values import ExchangeRate, Money
from treasury_kernel.exceptions import CurrencyMismatchError, TreasuryKernelError
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.account import Account
from treasury_kernel.models.expense import ProjectExpense
from treasury_kernel.models.payable import ContractorCertificationRecord, PayableRecord
from treasury_kernel.models.transaction import TransactionDirection
from treasury_kernel.services.account_service import AccountService
from treasury_kernel.services.base import BaseService
from treasury_kernel.services.ledger_service import LedgerService

logger = get_logger("services.settlement")


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a successful settlement."""

    document_ref: DocumentRef
    account_id: UUID
    transaction_id: UUID
    expense_id: UUID | None
    amount_debited: Money
    balance_after: Money


@dataclass(frozen=True)
class ReversalResult:
    """Outcome of a successful settlement reversal."""

    document_ref: DocumentRef
    account_id: UUID
    amount_credited: Money
    balance_after: Money


class SettlementService(BaseService):
    """
    Settles and reverts payable documents.

    Contract:
        ``settle`` and ``revert_settlement`` are one unit of work each.
        ``unwind`` is flush-only and is shared with PayableService's
        compensating delete.
    """

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

    def settle(
        self,
        ref: DocumentRef,
        account_id: UUID,
        description: str,
        capability: Capability,
        exchange_rate: ExchangeRate | None = None,
    ) -> SettlementResult:
        """
        Pay an approved document from ``account_id``.

        Args:
            ref: The document to pay.
            account_id: Funding account.
            description: Transaction text; the variant's title is used when blank.
            capability: Must allow SETTLE.
            exchange_rate: Required when the account and document currencies
                differ; converts document currency into account currency.
        """
        require(capability, Permission.SETTLE)

        with LogContext.bind(
            actor_id=capability.actor_id,
            operation="settle",
            document_ref=ref,
            account_id=account_id,
        ):
            try:
                with self._unit_of_work("settle"):
                    result = self._settle(ref, account_id, description, capability, exchange_rate)
            except TreasuryKernelError as exc:
                logger.warning(
                    "settlement_rejected",
                    extra={"error_code": exc.code, "reason": str(exc)},
                )
                raise

            logger.info(
                "settlement_completed",
                extra={
                    "transaction_id": str(result.transaction_id),
                    "expense_id": str(result.expense_id) if result.expense_id else None,
                    "amount": str(result.amount_debited.amount),
                    "currency": result.amount_debited.currency,
                    "balance_after": str(result.balance_after.amount),
                },
            )
            return result

    def _settle(
        self,
        ref: DocumentRef,
        account_id: UUID,
        description: str,
        capability: Capability,
        exchange_rate: ExchangeRate | None,
    ) -> SettlementResult:
        record = self._load_payable(ref)
        target = next_status(ref.kind, ref.id, PayableStatus(record.status), PayableAction.SETTLE)

        account = self._load_account(account_id)
        document_amount = record.money
        debit, rate = self._convert(document_amount, account, exchange_rate)

        now = self._clock.now()
        self._accounts.apply_debit(account, debit.amount, now)

        document = record.to_domain()
        title, _ = describe(document)
        transaction_id = self._ledger.append(
            account.id,
            TransactionDirection.DEBIT,
            debit.amount,
            description or title,
            ref,
            category=ref.kind.value,
            original=document_amount if rate else None,
            exchange_rate=rate,
            occurred_at=now,
        )

        expense_id = None
        if mirrors_expense(document):
            expense_id = self._mirror_expense(record, transaction_id, rate, description or title)

        record.status = target.value
        record.settlement_account_id = account.id
        record.settlement_transaction_id = transaction_id
        record.settlement_expense_id = expense_id
        record.paid_at = now
        record.updated_by_id = capability.actor_id
        self.session.flush()

        return SettlementResult(
            document_ref=ref,
            account_id=account.id,
            transaction_id=transaction_id,
            expense_id=expense_id,
            amount_debited=debit,
            balance_after=account.money,
        )

    def _convert(
        self,
        amount: Money,
        account: Account,
        exchange_rate: ExchangeRate | None,
    ) -> tuple[Money, ExchangeRate | None]:
        if amount.currency == account.currency:
            return amount, None
        if exchange_rate is None or exchange_rate.to_currency != account.currency:
            raise CurrencyMismatchError(account.currency, amount.currency)
        return exchange_rate.convert(amount), exchange_rate

    def _mirror_expense(
        self,
        record: ContractorCertificationRecord,
        transaction_id: UUID,
        rate: ExchangeRate | None,
        description: str,
    ) -> UUID:
        policy = self._expense_policy
        expense = ProjectExpense(
            id=uuid4(),
            project_ref=record.project_ref,
            expense_date=self._clock.now().date(),
            supplier_ref=record.contractor_ref,
            category_code=policy.certification_category,
            amount=record.amount,
            currency=record.currency,
            exchange_rate=rate.rate if rate else Decimal("1"),
            description=description,
            document_type=policy.document_type,
            payment_source=policy.treasury_payment_source,
            transaction_id=transaction_id,
        )
        self.session.add(expense)
        self.session.flush()
        return expense.id

    # =========================================================================
    # Reversal
    # =========================================================================

    def revert_settlement(self, ref: DocumentRef, capability: Capability) -> ReversalResult:
        """Undo a settlement; the document returns to APPROVED."""
        require(capability, Permission.REVERSE)

        with LogContext.bind(actor_id=capability.actor_id, operation="revert_settlement", document_ref=ref):
            with self._unit_of_work("revert_settlement"):
                record = self._load_payable(ref)
                next_status(ref.kind, ref.id, PayableStatus(record.status), PayableAction.REVERSE)
                account, credited = self.unwind(record, capability)
                result = ReversalResult(
                    document_ref=ref,
                    account_id=account.id,
                    amount_credited=credited,
                    balance_after=account.money,
                )

            logger.info(
                "settlement_reverted",
                extra={
                    "account_id": str(result.account_id),
                    "amount": str(credited.amount),
                    "currency": credited.currency,
                    "balance_after": str(result.balance_after.amount),
                },
            )
            return result

    def unwind(self, record: PayableRecord, capability: Capability) -> tuple[Account, Money]:
        """
        Reverse a paid record's side effects and return it to APPROVED.

        Flush order matters: the document's references are cleared before
        the expense is deleted, and the expense before the transaction, so
        no foreign key ever points at a deleted row.
        """
        settlement = record.settlement
        target = next_status(
            record.kind, record.id, PayableStatus(record.status), PayableAction.REVERSE
        )
        account = self._load_account(settlement.account_id)
        transaction = self._ledger.get(settlement.transaction_id)
        credited = Money(amount=transaction.amount, currency=transaction.currency)

        self._accounts.apply_credit(account, transaction.amount, self._clock.now())

        record.status = target.value
        record.settlement_account_id = None
        record.settlement_transaction_id = None
        record.settlement_expense_id = None
        record.paid_at = None
        record.updated_by_id = capability.actor_id
        self.session.flush()

        if settlement.expense_id is not None:
            expense = self.session.get(ProjectExpense, settlement.expense_id)
            if expense is not None:
                self.session.delete(expense)
                self.session.flush()

        self._ledger.remove(transaction.id)
        return account, credited
