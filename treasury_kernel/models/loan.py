"""
Module: treasury_kernel.models.loan
Responsibility: ORM persistence for internal loans ("préstamos") between
    accounts.  Every internal transfer opens one; repaying it writes the
    reverse transfer and marks it settled.
Architecture position: Kernel > Models.

Invariants enforced:
    - One loan per transfer: unique constraint on transfer_id.  The ledger
      legs themselves stay immutable; the loan row carries the status.
    - status moves PENDING -> SETTLED only once; repayment_transfer_id is
      set exactly when status is SETTLED.
    - Optimistic concurrency on ``version``, so two concurrent repayments
      cannot both succeed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import TrackedBase, UUIDString


class LoanStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"


class InternalLoan(TrackedBase):
    """Money lent from one account to another by an internal transfer."""

    __tablename__ = "internal_loans"

    __table_args__ = (
        UniqueConstraint("transfer_id", name="uq_loan_transfer"),
        CheckConstraint("status IN ('pending', 'settled')", name="ck_loan_status"),
        Index("idx_loan_repayment", "repayment_transfer_id"),
    )

    transfer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    lender_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    borrower_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    status: Mapped[LoanStatus] = mapped_column(
        String(10), nullable=False, default=LoanStatus.PENDING.value
    )

    settled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    repayment_transfer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<InternalLoan {self.amount} {self.currency} ({self.status})>"

    @property
    def is_settled(self) -> bool:
        return self.status == LoanStatus.SETTLED.value
