"""
Module: treasury_kernel.models.payable
Responsibility: ORM persistence for the four payable document variants, one
    table per variant (cash_advances, contractor_certifications,
    fund_requests, monthly_salaries), sharing columns through PayableMixin.
Architecture position: Kernel > Models.  Converts rows into the frozen
    domain variants of ``domain/payables.py`` via ``to_domain()``; no other
    layer reads loosely-typed row state.

Invariants enforced:
    - status is PAID iff settlement_account_id and settlement_transaction_id
      are set (ck_<table>_settlement); the FK on settlement_transaction_id
      makes the reference resolvable to exactly one transaction.
    - Optimistic concurrency via version_id_col: two sessions that both read
      APPROVED cannot both commit PAID.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from treasury_kernel.db.base import TrackedBase, UUIDString
from treasury_kernel.domain.payables import (
    CashAdvance,
    ContractorCertification,
    FundRequest,
    MonthlySalary,
    PayableKind,
    PayableStatus,
    SettlementRef,
)
from treasury_kernel.domain.values import Money


class PayableMixin:
    """Columns and behavior shared by every payable variant table."""

    kind: ClassVar[PayableKind]

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[PayableStatus] = mapped_column(
        String(10),
        nullable=False,
        default=PayableStatus.PENDING.value,
    )

    request_date: Mapped[date] = mapped_column(Date, nullable=False)

    beneficiary_ref: Mapped[str] = mapped_column(String(100), nullable=False)

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    settlement_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    settlement_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("account_transactions.id"),
        nullable=True,
    )

    settlement_expense_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("project_expenses.id"),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    @declared_attr.directive
    def __mapper_args__(cls) -> dict:
        return {"version_id_col": cls.version}

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        table = cls.__tablename__
        return (
            CheckConstraint(
                "(status = 'paid') = "
                "(settlement_account_id IS NOT NULL AND settlement_transaction_id IS NOT NULL)",
                name=f"ck_{table}_settlement",
            ),
            Index(f"idx_{table}_status", "status"),
        )

    @property
    def money(self) -> Money:
        return Money(amount=self.amount, currency=self.currency)

    @property
    def settlement(self) -> SettlementRef | None:
        if self.settlement_transaction_id is None or self.settlement_account_id is None:
            return None
        return SettlementRef(
            account_id=self.settlement_account_id,
            transaction_id=self.settlement_transaction_id,
            expense_id=self.settlement_expense_id,
        )

    def _common(self) -> dict:
        return {
            "id": self.id,
            "amount": self.money,
            "status": PayableStatus(self.status),
            "request_date": self.request_date,
            "beneficiary_ref": self.beneficiary_ref,
            "settlement": self.settlement,
        }


class CashAdvanceRecord(PayableMixin, TrackedBase):
    """Row in ``cash_advances``."""

    __tablename__ = "cash_advances"

    kind: ClassVar[PayableKind] = PayableKind.CASH_ADVANCE

    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    project_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_domain(self) -> CashAdvance:
        return CashAdvance(
            **self._common(),
            employee_name=self.employee_name,
            reason=self.reason or "",
            project_ref=self.project_ref,
        )


class ContractorCertificationRecord(PayableMixin, TrackedBase):
    """Row in ``contractor_certifications``."""

    __tablename__ = "contractor_certifications"

    kind: ClassVar[PayableKind] = PayableKind.CONTRACTOR_CERTIFICATION

    contractor_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    contractor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str] = mapped_column(String(1000), nullable=False, default="")

    def to_domain(self) -> ContractorCertification:
        return ContractorCertification(
            **self._common(),
            contractor_ref=self.contractor_ref,
            contractor_name=self.contractor_name,
            project_ref=self.project_ref,
            project_name=self.project_name,
            notes=self.notes or "",
        )


class FundRequestRecord(PayableMixin, TrackedBase):
    """Row in ``fund_requests``."""

    __tablename__ = "fund_requests"

    kind: ClassVar[PayableKind] = PayableKind.FUND_REQUEST

    requester_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    project_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_domain(self) -> FundRequest:
        return FundRequest(
            **self._common(),
            requester_name=self.requester_name,
            category=self.category,
            description=self.description or "",
            project_ref=self.project_ref,
            project_name=self.project_name,
        )


class MonthlySalaryRecord(PayableMixin, TrackedBase):
    """Row in ``monthly_salaries``.  ``amount`` holds the net salary."""

    __tablename__ = "monthly_salaries"

    kind: ClassVar[PayableKind] = PayableKind.MONTHLY_SALARY

    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(nullable=False)
    deductions: Mapped[Decimal] = mapped_column(nullable=False)

    def to_domain(self) -> MonthlySalary:
        return MonthlySalary(
            **self._common(),
            employee_name=self.employee_name,
            period=self.period,
            gross_salary=Money(amount=self.gross_salary, currency=self.currency),
            deductions=Money(amount=self.deductions, currency=self.currency),
        )


PayableRecord = (
    CashAdvanceRecord
    | ContractorCertificationRecord
    | FundRequestRecord
    | MonthlySalaryRecord
)

RECORD_TYPES: dict[PayableKind, type[PayableRecord]] = {
    PayableKind.CASH_ADVANCE: CashAdvanceRecord,
    PayableKind.CONTRACTOR_CERTIFICATION: ContractorCertificationRecord,
    PayableKind.FUND_REQUEST: FundRequestRecord,
    PayableKind.MONTHLY_SALARY: MonthlySalaryRecord,
}
