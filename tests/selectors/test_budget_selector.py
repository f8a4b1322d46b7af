"""
Contractor budgets: ceiling, paid certifications and remaining amount.
"""

from datetime import date
from decimal import Decimal

import pytest

from treasury_kernel.exceptions import AuthorizationError, BudgetNotFoundError


@pytest.fixture
def funded_account(make_treasury_account):
    return make_treasury_account(balance="100000")


class TestBudgetStatus:
    def test_over_budget_is_recorded_not_blocked(
        self,
        budget_service,
        budget_selector,
        make_certification,
        settlement_service,
        funded_account,
        full_capability,
    ):
        budget_service.set_budget("contractor-1", "project-1", "5000", "ARS", full_capability)
        settlement_service.settle(make_certification(amount="4800"), funded_account.id, "Cert 1", full_capability)

        settlement_service.settle(make_certification(amount="300"), funded_account.id, "Cert 2", full_capability)

        status = budget_selector.status("contractor-1", "project-1")
        assert status.paid == Decimal("5100")
        assert status.remaining == Decimal("-100")
        assert status.is_over_budget

    def test_additionals_raise_the_ceiling(self, budget_service, budget_selector, full_capability):
        budget_service.set_budget("contractor-1", "project-1", "5000", "ARS", full_capability)
        budget_service.add_additional(
            "contractor-1", "project-1", "1500", full_capability,
            description="Ampliación losa", granted_on=date(2026, 2, 10),
        )
        budget_service.add_additional("contractor-1", "project-1", "500", full_capability)

        status = budget_selector.status("contractor-1", "project-1")
        assert status.ceiling == Decimal("7000")
        assert status.remaining == Decimal("7000")

    def test_only_paid_certifications_count(
        self,
        budget_service,
        budget_selector,
        make_certification,
        settlement_service,
        funded_account,
        full_capability,
    ):
        budget_service.set_budget("contractor-1", "project-1", "5000", "ARS", full_capability)
        make_certification(amount="999")
        make_certification(amount="1", project_ref="project-2")
        settled = make_certification(amount="1000")
        settlement_service.settle(settled, funded_account.id, "Cert", full_capability)
        settlement_service.settle(make_certification(amount="200"), funded_account.id, "Cert", full_capability)
        settlement_service.revert_settlement(settled, full_capability)

        assert budget_selector.remaining("contractor-1", "project-1") == Decimal("4800")

    def test_other_currency_certifications_do_not_count(
        self,
        budget_service,
        budget_selector,
        make_certification,
        make_treasury_account,
        settlement_service,
        funded_account,
        full_capability,
    ):
        budget_service.set_budget("contractor-1", "project-1", "5000", "ARS", full_capability)
        dollars = make_treasury_account(balance="1000", currency="USD")
        usd_certification = make_certification(amount="100", currency="USD")
        settlement_service.settle(usd_certification, dollars.id, "Cert USD", full_capability)
        settlement_service.settle(make_certification(amount="300"), funded_account.id, "Cert ARS", full_capability)

        status = budget_selector.status("contractor-1", "project-1")

        assert status.currency == "ARS"
        assert status.paid == Decimal("300")
        assert status.remaining == Decimal("4700")

    def test_set_budget_replaces_initial_amount(self, budget_service, budget_selector, full_capability):
        first = budget_service.set_budget("contractor-1", "project-1", "5000", "ARS", full_capability)
        second = budget_service.set_budget("contractor-1", "project-1", "6000", "ARS", full_capability)

        assert first == second
        assert budget_selector.status("contractor-1", "project-1").initial_amount == Decimal("6000")


class TestBudgetErrors:
    def test_missing_budget(self, budget_selector):
        with pytest.raises(BudgetNotFoundError):
            budget_selector.status("contractor-1", "project-1")

    def test_additional_without_budget(self, budget_service, full_capability):
        with pytest.raises(BudgetNotFoundError):
            budget_service.add_additional("contractor-1", "project-1", "100", full_capability)

    def test_requires_manage_permission(self, budget_service, requester_capability):
        with pytest.raises(AuthorizationError):
            budget_service.set_budget("contractor-1", "project-1", "5000", "ARS", requester_capability)
