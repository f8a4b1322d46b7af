"""
Module: treasury_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions -- one row per money
    movement against one account.  The audit trail balances reconcile to.
Architecture position: Kernel > Models.

Invariants enforced:
    - amount is strictly positive; direction carries the sign.
    - Immutable once written: the before_update listener below refuses any
      UPDATE.  Rows are only ever deleted by a compensating reversal.
    - related_document_kind/id point back at the payable that caused the
      movement; transfer_id pairs the two legs of an internal transfer.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import TrackedBase, UUIDString
from treasury_kernel.exceptions import ImmutabilityViolationError


class TransactionDirection(str, Enum):
    """Which way money moved relative to the account."""

    CREDIT = "credit"
    DEBIT = "debit"

    @property
    def sign(self) -> int:
        return 1 if self is TransactionDirection.CREDIT else -1


class LedgerTransaction(TrackedBase):
    """An immutable, timestamped movement of money on one account."""

    __tablename__ = "account_transactions"

    __table_args__ = (
        CheckConstraint("direction IN ('credit', 'debit')", name="ck_transaction_direction"),
        Index("idx_transaction_account_time", "account_id", "occurred_at"),
        Index("idx_transaction_document", "related_document_kind", "related_document_id"),
        Index("idx_transaction_transfer", "transfer_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    direction: Mapped[TransactionDirection] = mapped_column(String(6), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    related_document_kind: Mapped[str | None] = mapped_column(String(40), nullable=True)

    related_document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    transfer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Set when a settlement converted the document amount into the account currency
    original_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    original_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.direction} {self.amount} {self.currency} "
            f"on {self.account_id}>"
        )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the direction's sign applied (credit +, debit -)."""
        return self.amount * TransactionDirection(self.direction).sign


@event.listens_for(LedgerTransaction, "before_update")
def _refuse_transaction_update(mapper, connection, target: LedgerTransaction) -> None:
    raise ImmutabilityViolationError(
        entity_type="LedgerTransaction",
        entity_id=str(target.id),
    )
