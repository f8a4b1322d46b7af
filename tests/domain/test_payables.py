"""
Payable document variants and the life-cycle transition table.
"""

from datetime import date
from uuid import uuid4

import pytest

from treasury_kernel.domain.payables import (
    ACTION_PERMISSIONS,
    PAYABLE_TRANSITIONS,
    CashAdvance,
    ContractorCertification,
    FundRequest,
    MonthlySalary,
    PayableAction,
    PayableKind,
    PayableStatus,
    SettlementRef,
    describe,
    mirrors_expense,
    next_status,
    reference_date,
    settlement_consistent,
)
from treasury_kernel.domain.capability import Permission
from treasury_kernel.domain.values import Money
from treasury_kernel.exceptions import InvalidStateTransitionError


def _salary(**overrides):
    fields = dict(
        id=uuid4(),
        amount=Money.of("1000", "ARS"),
        status=PayableStatus.APPROVED,
        request_date=date(2026, 2, 25),
        beneficiary_ref="user-luis",
        employee_name="Luis Gómez",
        period="2026-02",
        gross_salary=Money.of("1200", "ARS"),
        deductions=Money.of("200", "ARS"),
    )
    fields.update(overrides)
    return MonthlySalary(**fields)


def _fund_request(**overrides):
    fields = dict(
        id=uuid4(),
        amount=Money.of("300", "ARS"),
        status=PayableStatus.APPROVED,
        request_date=date(2026, 2, 18),
        beneficiary_ref="user-ana",
        requester_name="Ana Pérez",
        category="Materiales",
    )
    fields.update(overrides)
    return FundRequest(**fields)


def _certification(**overrides):
    fields = dict(
        id=uuid4(),
        amount=Money.of("300", "ARS"),
        status=PayableStatus.APPROVED,
        request_date=date(2026, 2, 20),
        beneficiary_ref="contractor-1",
        contractor_ref="contractor-1",
        contractor_name="Construcciones Sur",
        project_ref="project-1",
        project_name="Edificio Norte",
    )
    fields.update(overrides)
    return ContractorCertification(**fields)


def _advance(**overrides):
    fields = dict(
        id=uuid4(),
        amount=Money.of("150", "ARS"),
        status=PayableStatus.PENDING,
        request_date=date(2026, 2, 19),
        beneficiary_ref="user-marta",
        employee_name="Marta Ruiz",
    )
    fields.update(overrides)
    return CashAdvance(**fields)


class TestTransitions:
    @pytest.mark.parametrize(
        "current, action, expected",
        [
            (PayableStatus.PENDING, PayableAction.APPROVE, PayableStatus.APPROVED),
            (PayableStatus.PENDING, PayableAction.REJECT, PayableStatus.REJECTED),
            (PayableStatus.APPROVED, PayableAction.REVERT_TO_PENDING, PayableStatus.PENDING),
            (PayableStatus.APPROVED, PayableAction.SETTLE, PayableStatus.PAID),
            (PayableStatus.PAID, PayableAction.REVERSE, PayableStatus.APPROVED),
            (PayableStatus.REJECTED, PayableAction.REOPEN, PayableStatus.PENDING),
        ],
    )
    def test_legal_edges(self, current, action, expected):
        assert next_status(PayableKind.FUND_REQUEST, uuid4(), current, action) == expected

    @pytest.mark.parametrize(
        "current, action",
        [
            (PayableStatus.PENDING, PayableAction.SETTLE),
            (PayableStatus.PAID, PayableAction.SETTLE),
            (PayableStatus.PAID, PayableAction.REVERT_TO_PENDING),
            (PayableStatus.REJECTED, PayableAction.APPROVE),
            (PayableStatus.APPROVED, PayableAction.REVERSE),
        ],
    )
    def test_illegal_edges_raise(self, current, action):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            next_status(PayableKind.FUND_REQUEST, "doc-1", current, action)
        assert exc_info.value.from_status == current.value

    def test_paid_only_reachable_by_settle(self):
        into_paid = [a for (s, a), t in PAYABLE_TRANSITIONS.items() if t is PayableStatus.PAID]
        out_of_paid = [a for (s, a) in PAYABLE_TRANSITIONS if s is PayableStatus.PAID]
        assert into_paid == [PayableAction.SETTLE]
        assert out_of_paid == [PayableAction.REVERSE]

    def test_permissions(self):
        assert ACTION_PERMISSIONS[PayableAction.APPROVE] is Permission.APPROVE
        assert ACTION_PERMISSIONS[PayableAction.SETTLE] is Permission.SETTLE
        assert ACTION_PERMISSIONS[PayableAction.REVERSE] is Permission.REVERSE
        assert ACTION_PERMISSIONS[PayableAction.REOPEN] is Permission.APPROVE


class TestVariantDispatch:
    def test_salary_reference_date_is_period_start(self):
        assert reference_date(_salary()) == date(2026, 2, 1)

    def test_other_variants_use_request_date(self):
        assert reference_date(_fund_request()) == date(2026, 2, 18)
        assert reference_date(_advance()) == date(2026, 2, 19)

    def test_describe(self):
        assert describe(_salary()) == ("Sueldo 2026-02", "Oficina Técnica: Luis Gómez")
        assert describe(_certification())[0] == "Certificación Semanal"
        assert describe(_fund_request(description="Cemento")) == (
            "Cemento",
            "Solicitante: Ana Pérez | Sin Obra",
        )
        assert describe(_advance())[0] == "Adelanto: Marta Ruiz"

    def test_only_certifications_mirror_expenses(self):
        assert mirrors_expense(_certification())
        assert not mirrors_expense(_salary())
        assert not mirrors_expense(_fund_request())
        assert not mirrors_expense(_advance())

    def test_unknown_variant_raises(self):
        with pytest.raises(TypeError):
            reference_date(object())

    def test_kind_and_ref(self):
        doc = _certification()
        assert doc.ref.kind is PayableKind.CONTRACTOR_CERTIFICATION
        assert str(doc.ref) == f"contractor_certification/{doc.id}"
        assert PayableKind.MONTHLY_SALARY.collection == "monthly_salaries"


class TestSettlementConsistency:
    def test_paid_requires_reference(self):
        assert not settlement_consistent(_fund_request(status=PayableStatus.PAID))
        paid = _fund_request(
            status=PayableStatus.PAID,
            settlement=SettlementRef(account_id=uuid4(), transaction_id=uuid4()),
        )
        assert settlement_consistent(paid)

    def test_unpaid_must_not_carry_reference(self):
        stray = _fund_request(settlement=SettlementRef(account_id=uuid4(), transaction_id=uuid4()))
        assert not settlement_consistent(stray)
