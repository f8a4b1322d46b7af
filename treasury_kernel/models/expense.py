"""
Module: treasury_kernel.models.expense
Responsibility: Project cost-accounting expenses mirrored by the ledger.
    A row is written when a contractor certification is settled or when a
    cash box pays a project cost directly, and deleted together with the
    transaction that funded it.
Architecture position: Kernel > Models.

Invariants enforced:
    - transaction_id points at the funding LedgerTransaction; the two rows
      are created and deleted in the same unit of work.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import TrackedBase, UUIDString


class ProjectExpense(TrackedBase):
    """A paid project cost ("gasto de obra")."""

    __tablename__ = "project_expenses"

    __table_args__ = (
        Index("idx_expense_project", "project_ref", "expense_date"),
        Index("idx_expense_transaction", "transaction_id"),
    )

    project_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    expense_date: Mapped[date] = mapped_column(Date, nullable=False)

    supplier_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    category_code: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    document_type: Mapped[str] = mapped_column(String(50), nullable=False)

    payment_source: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(String(10), nullable=False, default="paid")

    transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("account_transactions.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ProjectExpense {self.project_ref} {self.amount} {self.currency}>"
