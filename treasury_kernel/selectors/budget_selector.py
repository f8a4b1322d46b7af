"""
Module: treasury_kernel.selectors.budget_selector
Responsibility: Derived contractor budget reads: ceiling, amount already
    paid through certifications, and what remains (negative when over).
Architecture position: Kernel > Selectors.

The ledger records over-budget payments; it never blocks them.  This is the
only place the ceiling is compared against payments.  Only certifications in
the budget currency count against it; no conversion is applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from treasury_kernel.domain.payables import PayableStatus
from treasury_kernel.exceptions import BudgetNotFoundError
from treasury_kernel.models.budget import ContractorBudget
from treasury_kernel.models.payable import ContractorCertificationRecord
from treasury_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class BudgetStatus:
    contractor_ref: str
    project_ref: str
    currency: str
    initial_amount: Decimal
    additionals: Decimal
    paid: Decimal

    @property
    def ceiling(self) -> Decimal:
        return self.initial_amount + self.additionals

    @property
    def remaining(self) -> Decimal:
        return self.ceiling - self.paid

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0


class BudgetSelector(BaseSelector):
    """Reads contractor budgets against paid certifications."""

    def paid_certifications(self, contractor_ref: str, project_ref: str, currency: str) -> Decimal:
        amounts = self.session.execute(
            select(ContractorCertificationRecord.amount).where(
                ContractorCertificationRecord.contractor_ref == contractor_ref,
                ContractorCertificationRecord.project_ref == project_ref,
                ContractorCertificationRecord.currency == currency,
                ContractorCertificationRecord.status == PayableStatus.PAID.value,
            )
        ).scalars()
        return sum(amounts, Decimal("0"))

    def status(self, contractor_ref: str, project_ref: str) -> BudgetStatus:
        """
        Budget position for a contractor on a project.

        Raises:
            BudgetNotFoundError: If no budget is configured for the pair.
        """
        budget = self.session.execute(
            select(ContractorBudget)
            .where(
                ContractorBudget.contractor_ref == contractor_ref,
                ContractorBudget.project_ref == project_ref,
            )
            .options(selectinload(ContractorBudget.additionals))
        ).scalars().first()
        if budget is None:
            raise BudgetNotFoundError(contractor_ref, project_ref)

        return BudgetStatus(
            contractor_ref=contractor_ref,
            project_ref=project_ref,
            currency=budget.currency,
            initial_amount=budget.initial_amount,
            additionals=sum((a.amount for a in budget.additionals), Decimal("0")),
            paid=self.paid_certifications(contractor_ref, project_ref, budget.currency),
        )

    def remaining(self, contractor_ref: str, project_ref: str) -> Decimal:
        return self.status(contractor_ref, project_ref).remaining
