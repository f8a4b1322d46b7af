"""
Payable documents -- tagged variants and their life-cycle.

Responsibility:
    Defines the four payable document variants (cash advance, contractor
    certification, fund request, monthly salary) as frozen dataclasses, the
    shared status enum, and the transition table every persisted status
    change must go through.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ORM rows convert to
    these types at the storage boundary (``models/payable.py``).

Invariants enforced:
    - Life-cycle: PAYABLE_TRANSITIONS lists the only legal edges.  APPROVED
      -> PAID is reachable only through the SETTLE action and PAID ->
      APPROVED only through REVERSE, so no caller can flip a document into
      or out of PAID without the settlement side effects.
    - Settlement consistency: a document is PAID iff it carries a
      SettlementRef (``settlement_consistent``).

Failure modes:
    - InvalidStateTransitionError when an action is not legal from the
      current status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import ClassVar
from uuid import UUID

from treasury_kernel.domain.capability import Permission
from treasury_kernel.domain.values import Money
from treasury_kernel.exceptions import InvalidPeriodError, InvalidStateTransitionError


class PayableKind(str, Enum):
    """Payable document variants."""

    CASH_ADVANCE = "cash_advance"
    CONTRACTOR_CERTIFICATION = "contractor_certification"
    FUND_REQUEST = "fund_request"
    MONTHLY_SALARY = "monthly_salary"

    @property
    def collection(self) -> str:
        """Storage collection (table) holding this variant."""
        return _COLLECTIONS[self]


_COLLECTIONS: dict[PayableKind, str] = {
    PayableKind.CASH_ADVANCE: "cash_advances",
    PayableKind.CONTRACTOR_CERTIFICATION: "contractor_certifications",
    PayableKind.FUND_REQUEST: "fund_requests",
    PayableKind.MONTHLY_SALARY: "monthly_salaries",
}


class PayableStatus(str, Enum):
    """Payable document life-cycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class PayableAction(str, Enum):
    """Actions that move a payable document between states."""

    APPROVE = "approve"
    REJECT = "reject"
    REVERT_TO_PENDING = "revert_to_pending"
    REOPEN = "reopen"
    SETTLE = "settle"
    REVERSE = "reverse"


PAYABLE_TRANSITIONS: dict[tuple[PayableStatus, PayableAction], PayableStatus] = {
    (PayableStatus.PENDING, PayableAction.APPROVE): PayableStatus.APPROVED,
    (PayableStatus.PENDING, PayableAction.REJECT): PayableStatus.REJECTED,
    (PayableStatus.APPROVED, PayableAction.REVERT_TO_PENDING): PayableStatus.PENDING,
    (PayableStatus.APPROVED, PayableAction.SETTLE): PayableStatus.PAID,
    (PayableStatus.PAID, PayableAction.REVERSE): PayableStatus.APPROVED,
    (PayableStatus.REJECTED, PayableAction.REOPEN): PayableStatus.PENDING,
}

ACTION_PERMISSIONS: dict[PayableAction, Permission] = {
    PayableAction.APPROVE: Permission.APPROVE,
    PayableAction.REJECT: Permission.APPROVE,
    PayableAction.REVERT_TO_PENDING: Permission.APPROVE,
    PayableAction.REOPEN: Permission.APPROVE,
    PayableAction.SETTLE: Permission.SETTLE,
    PayableAction.REVERSE: Permission.REVERSE,
}

# Actions with side effects outside the document; only SettlementService may apply them.
SETTLEMENT_ACTIONS: frozenset[PayableAction] = frozenset(
    {PayableAction.SETTLE, PayableAction.REVERSE}
)


def next_status(
    kind: PayableKind,
    document_id: UUID | str,
    current: PayableStatus,
    action: PayableAction,
) -> PayableStatus:
    """
    Resolve the target status of ``action`` applied in state ``current``.

    Raises:
        InvalidStateTransitionError: If the edge is not in PAYABLE_TRANSITIONS.
    """
    target = PAYABLE_TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidStateTransitionError(
            kind=kind.value,
            document_id=str(document_id),
            from_status=current.value,
            to_status=action.value,
        )
    return target


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """Reference to one payable document (variant + id)."""

    kind: PayableKind
    id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.id}"


@dataclass(frozen=True, slots=True)
class SettlementRef:
    """Where a paid document's money came from."""

    account_id: UUID
    transaction_id: UUID
    expense_id: UUID | None = None


# =========================================================================
# Variants
# =========================================================================


@dataclass(frozen=True, kw_only=True)
class _PayableBase:
    id: UUID
    amount: Money
    status: PayableStatus
    request_date: date
    beneficiary_ref: str
    settlement: SettlementRef | None = None

    kind: ClassVar[PayableKind]

    @property
    def ref(self) -> DocumentRef:
        return DocumentRef(kind=self.kind, id=self.id)


@dataclass(frozen=True, kw_only=True)
class CashAdvance(_PayableBase):
    """Salary advance requested by an employee."""

    kind: ClassVar[PayableKind] = PayableKind.CASH_ADVANCE

    employee_name: str
    reason: str = ""
    project_ref: str | None = None


@dataclass(frozen=True, kw_only=True)
class ContractorCertification(_PayableBase):
    """Weekly progress certification billed by a subcontractor."""

    kind: ClassVar[PayableKind] = PayableKind.CONTRACTOR_CERTIFICATION

    contractor_ref: str
    contractor_name: str
    project_ref: str
    project_name: str
    notes: str = ""


@dataclass(frozen=True, kw_only=True)
class FundRequest(_PayableBase):
    """Request for cash to cover project or office spending."""

    kind: ClassVar[PayableKind] = PayableKind.FUND_REQUEST

    requester_name: str
    category: str
    description: str = ""
    project_ref: str | None = None
    project_name: str | None = None


@dataclass(frozen=True, kw_only=True)
class MonthlySalary(_PayableBase):
    """Net monthly salary of a technical-office employee."""

    kind: ClassVar[PayableKind] = PayableKind.MONTHLY_SALARY

    employee_name: str
    period: str  # YYYY-MM
    gross_salary: Money
    deductions: Money


PayableDocument = CashAdvance | ContractorCertification | FundRequest | MonthlySalary


# =========================================================================
# Variant dispatch
# =========================================================================


def period_start(period: str) -> date:
    """First day of a ``YYYY-MM`` payroll period."""
    try:
        year, month = period.split("-")
        return date(int(year), int(month), 1)
    except (AttributeError, ValueError) as exc:
        raise InvalidPeriodError(period) from exc


def reference_date(document: PayableDocument) -> date:
    """Date an obligation is considered due from, for queue ordering."""
    match document:
        case MonthlySalary(period=period):
            return period_start(period)
        case CashAdvance() | ContractorCertification() | FundRequest():
            return document.request_date
        case _:
            raise TypeError(f"Unknown payable variant: {type(document).__name__}")


def describe(document: PayableDocument) -> tuple[str, str]:
    """Human-facing (title, subtitle) pair for queues and transaction text."""
    match document:
        case MonthlySalary(period=period, employee_name=name):
            return f"Sueldo {period}", f"Oficina Técnica: {name}"
        case ContractorCertification(contractor_name=contractor, project_name=project):
            return "Certificación Semanal", f"Subcontratista: {contractor} | {project}"
        case FundRequest(description=text, category=category, requester_name=requester):
            project = document.project_name or "Sin Obra"
            return text or category, f"Solicitante: {requester} | {project}"
        case CashAdvance(employee_name=name, reason=reason):
            return f"Adelanto: {name}", reason or "Adelanto de sueldo"
        case _:
            raise TypeError(f"Unknown payable variant: {type(document).__name__}")


def mirrors_expense(document: PayableDocument) -> bool:
    """Whether settling this variant books a project cost-accounting expense."""
    match document:
        case ContractorCertification():
            return True
        case CashAdvance() | FundRequest() | MonthlySalary():
            return False
        case _:
            raise TypeError(f"Unknown payable variant: {type(document).__name__}")


def settlement_consistent(document: PayableDocument) -> bool:
    """PAID iff a settlement reference is present."""
    return (document.status == PayableStatus.PAID) == (document.settlement is not None)
