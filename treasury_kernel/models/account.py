"""
Module: treasury_kernel.models.account
Responsibility: ORM persistence for money-holding accounts (personal cash
    boxes and treasury/bank accounts) and their periodic closures.
Architecture position: Kernel > Models.  May import from db/ and domain/values.

Invariants enforced:
    - One personal cash account per (owner, currency): unique constraint
      uq_account_owner_currency.  Treasury accounts carry no owner, and NULL
      owners never collide.
    - Optimistic concurrency: ``version`` is the mapper's version_id_col, so
      a stale balance write fails with StaleDataError instead of silently
      overwriting a concurrent debit.
    - Balance equals the signed sum of the account's transactions.  Not
      recomputed here; only SettlementService and MovementService touch
      ``balance``, always together with a ledger append.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import TrackedBase, UUIDString
from treasury_kernel.domain.values import Money


class AccountKind(str, Enum):
    """Kinds of money-holding accounts."""

    PERSONAL_CASH = "personal_cash"
    TREASURY = "treasury"


class Account(TrackedBase):
    """
    A named balance-holding account.

    Contract:
        ``balance`` is mutated only inside a unit of work that also writes
        the matching LedgerTransaction.  ``closed_through`` is the timestamp
        of the latest closure; movements dated earlier are refused.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("kind", "owner_ref", "currency", name="uq_account_owner_currency"),
        Index("idx_account_kind", "kind"),
        Index("idx_account_owner", "owner_ref"),
    )

    kind: Mapped[AccountKind] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Owning user for personal cash boxes; NULL for treasury accounts
    owner_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    closed_through: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.kind}, {self.currency}) balance={self.balance}>"

    @property
    def money(self) -> Money:
        """Current balance as a Money value."""
        return Money(amount=self.balance, currency=self.currency)


class AccountClosure(TrackedBase):
    """
    Closure checkpoint ("cierre de caja") for an account.

    Records the balance at ``closed_at``.  Immutable once written.
    """

    __tablename__ = "account_closures"

    __table_args__ = (Index("idx_closure_account", "account_id", "closed_at"),)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    closed_at: Mapped[datetime] = mapped_column(nullable=False)

    balance: Mapped[Decimal] = mapped_column(nullable=False)

    notes: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
