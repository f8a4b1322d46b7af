"""
Module: treasury_kernel.models.budget
Responsibility: Contractor budget ceilings per (contractor, project): an
    initial amount plus any number of approved additionals.
Architecture position: Kernel > Models.

The remaining budget is never stored; BudgetSelector derives it from the
ceiling and the paid certifications for the pair.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from treasury_kernel.db.base import TrackedBase, UUIDString


class ContractorBudget(TrackedBase):
    """Agreed ceiling for one contractor on one project."""

    __tablename__ = "contractor_budgets"

    __table_args__ = (
        UniqueConstraint("contractor_ref", "project_ref", name="uq_budget_contractor_project"),
    )

    contractor_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    project_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    initial_amount: Mapped[Decimal] = mapped_column(nullable=False)

    additionals: Mapped[list["BudgetAdditional"]] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetAdditional.granted_on",
    )

    @property
    def ceiling(self) -> Decimal:
        return self.initial_amount + sum(
            (a.amount for a in self.additionals), Decimal("0")
        )


class BudgetAdditional(TrackedBase):
    """Extra amount granted on top of a contractor budget."""

    __tablename__ = "contractor_budget_additionals"

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contractor_budgets.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    granted_on: Mapped[date] = mapped_column(Date, nullable=False)

    budget: Mapped[ContractorBudget] = relationship(back_populates="additionals")
