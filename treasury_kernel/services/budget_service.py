"""
BudgetService -- contractor budget ceilings.

Sets the initial budget for a (contractor, project) pair and records
additionals on top of it.  Budgets are advisory: settlement never consults
them.  BudgetSelector derives the remaining amount.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from treasury_kernel.db.types import to_amount, validate_currency
from treasury_kernel.domain.capability import Capability, Permission, require
from treasury_kernel.exceptions import BudgetNotFoundError
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.budget import BudgetAdditional, ContractorBudget
from treasury_kernel.services.base import BaseService

logger = get_logger("services.budget")


class BudgetService(BaseService):
    """Writes contractor budgets.  Requires the MANAGE_ACCOUNTS permission."""

    def _find(self, contractor_ref: str, project_ref: str) -> ContractorBudget | None:
        return self.session.execute(
            select(ContractorBudget).where(
                ContractorBudget.contractor_ref == contractor_ref,
                ContractorBudget.project_ref == project_ref,
            )
        ).scalars().first()

    def set_budget(
        self,
        contractor_ref: str,
        project_ref: str,
        initial_amount: Decimal | int | str,
        currency: str,
        capability: Capability,
    ) -> UUID:
        """Create the budget, or replace its initial amount if it exists."""
        require(capability, Permission.MANAGE_ACCOUNTS)
        amount = to_amount(initial_amount)
        currency = validate_currency(currency)

        with LogContext.bind(actor_id=capability.actor_id, operation="set_budget"):
            with self._unit_of_work("set_budget"):
                budget = self._find(contractor_ref, project_ref)
                if budget is None:
                    budget = ContractorBudget(
                        contractor_ref=contractor_ref,
                        project_ref=project_ref,
                        currency=currency,
                        initial_amount=amount,
                        created_by_id=capability.actor_id,
                    )
                    self.session.add(budget)
                else:
                    budget.initial_amount = amount
                    budget.currency = currency
                    budget.updated_by_id = capability.actor_id
                self.session.flush()
                logger.info(
                    "budget_set",
                    extra={
                        "contractor_ref": contractor_ref,
                        "project_ref": project_ref,
                        "initial_amount": str(amount),
                    },
                )
        return budget.id

    def add_additional(
        self,
        contractor_ref: str,
        project_ref: str,
        amount: Decimal | int | str,
        capability: Capability,
        description: str = "",
        granted_on: date | None = None,
    ) -> UUID:
        """Grant an additional amount on an existing budget."""
        require(capability, Permission.MANAGE_ACCOUNTS)
        value = to_amount(amount)

        with LogContext.bind(actor_id=capability.actor_id, operation="add_budget_additional"):
            with self._unit_of_work("add_budget_additional"):
                budget = self._find(contractor_ref, project_ref)
                if budget is None:
                    raise BudgetNotFoundError(contractor_ref, project_ref)
                additional = BudgetAdditional(
                    budget_id=budget.id,
                    amount=value,
                    description=description,
                    granted_on=granted_on or self._clock.now().date(),
                    created_by_id=capability.actor_id,
                )
                self.session.add(additional)
                self.session.flush()
                logger.info(
                    "budget_additional_added",
                    extra={
                        "contractor_ref": contractor_ref,
                        "project_ref": project_ref,
                        "amount": str(value),
                    },
                )
        return additional.id
