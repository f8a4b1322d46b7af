"""
PayableService -- persisted life-cycle of payable documents.

Responsibility:
    Creates Pending documents of each variant and applies the approval-side
    transitions (approve, reject, revert to pending, reopen).  Also deletes
    documents, routing a paid document through the settlement unwind so its
    transaction and mirrored expense go with it.

Architecture position:
    Kernel > Services -- imperative shell around ``domain/payables.py``.

Invariants enforced:
    - Every status change goes through ``next_status``; PAID is neither
      entered nor left here (SettlementService owns those edges).
    - Each action is authorized by the capability passed in, per
      ACTION_PERMISSIONS.
    - Monthly salaries are always payable in ARS; the payable amount is the
      net salary (gross minus deductions).

Failure modes:
    - DocumentNotFoundError, InvalidStateTransitionError,
      AuthorizationError, InvalidAmountError, InvalidCurrencyError,
      InvalidPeriodError.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

from treasury_kernel.db.types import to_amount, to_non_negative_amount, validate_currency
from treasury_kernel.domain.capability import Capability, Permission, require
from treasury_kernel.domain.payables import (
    ACTION_PERMISSIONS,
    SETTLEMENT_ACTIONS,
    DocumentRef,
    PayableAction,
    PayableDocument,
    PayableStatus,
    next_status,
    period_start,
)
from treasury_kernel.exceptions import InvalidAmountError
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.models.payable import (
    CashAdvanceRecord,
    ContractorCertificationRecord,
    FundRequestRecord,
    MonthlySalaryRecord,
    PayableRecord,
)
from treasury_kernel.services.base import BaseService
from treasury_kernel.services.settlement_service import SettlementService

logger = get_logger("services.payable")

SALARY_CURRENCY = "ARS"


class PayableService(BaseService):
    """Submission and approval workflow for payable documents."""

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, ref: DocumentRef) -> PayableDocument:
        return self._load_payable(ref, for_update=False).to_domain()

    # =========================================================================
    # Submission
    # =========================================================================

    def submit_cash_advance(
        self,
        *,
        employee_name: str,
        beneficiary_ref: str,
        amount: Decimal | int | str,
        currency: str,
        request_date: date,
        capability: Capability,
        reason: str = "",
        project_ref: str | None = None,
    ) -> DocumentRef:
        record = CashAdvanceRecord(
            employee_name=employee_name,
            reason=reason,
            project_ref=project_ref,
        )
        return self._submit(record, beneficiary_ref, amount, currency, request_date, capability)

    def submit_contractor_certification(
        self,
        *,
        contractor_ref: str,
        contractor_name: str,
        project_ref: str,
        project_name: str,
        amount: Decimal | int | str,
        currency: str,
        request_date: date,
        capability: Capability,
        notes: str = "",
    ) -> DocumentRef:
        record = ContractorCertificationRecord(
            contractor_ref=contractor_ref,
            contractor_name=contractor_name,
            project_ref=project_ref,
            project_name=project_name,
            notes=notes,
        )
        return self._submit(record, contractor_ref, amount, currency, request_date, capability)

    def submit_fund_request(
        self,
        *,
        requester_name: str,
        beneficiary_ref: str,
        category: str,
        amount: Decimal | int | str,
        currency: str,
        request_date: date,
        capability: Capability,
        description: str = "",
        project_ref: str | None = None,
        project_name: str | None = None,
    ) -> DocumentRef:
        record = FundRequestRecord(
            requester_name=requester_name,
            category=category,
            description=description,
            project_ref=project_ref,
            project_name=project_name,
        )
        return self._submit(record, beneficiary_ref, amount, currency, request_date, capability)

    def submit_monthly_salary(
        self,
        *,
        employee_name: str,
        beneficiary_ref: str,
        period: str,
        gross_salary: Decimal | int | str,
        deductions: Decimal | int | str,
        capability: Capability,
        request_date: date | None = None,
    ) -> DocumentRef:
        """Submit a salary; the payable amount is gross minus deductions, in ARS."""
        gross = to_amount(gross_salary)
        withheld = to_non_negative_amount(deductions)
        net = gross - withheld
        if net <= 0:
            raise InvalidAmountError(net)
        # Raises InvalidPeriodError unless period is YYYY-MM
        first_day = period_start(period)

        record = MonthlySalaryRecord(
            employee_name=employee_name,
            period=period,
            gross_salary=gross,
            deductions=withheld,
        )
        return self._submit(
            record,
            beneficiary_ref,
            net,
            SALARY_CURRENCY,
            request_date or first_day,
            capability,
        )

    def _submit(
        self,
        record: PayableRecord,
        beneficiary_ref: str,
        amount: Decimal | int | str,
        currency: str,
        request_date: date,
        capability: Capability,
    ) -> DocumentRef:
        require(capability, Permission.REQUEST)
        record.id = uuid4()
        record.amount = to_amount(amount)
        record.currency = validate_currency(currency)
        record.status = PayableStatus.PENDING.value
        record.request_date = request_date
        record.beneficiary_ref = beneficiary_ref
        record.created_by_id = capability.actor_id
        ref = DocumentRef(kind=record.kind, id=record.id)

        with LogContext.bind(actor_id=capability.actor_id, document_ref=ref):
            with self._unit_of_work("submit_payable"):
                self.session.add(record)
                self.session.flush()
                logger.info(
                    "payable_submitted",
                    extra={
                        "kind": record.kind.value,
                        "document_id": str(record.id),
                        "amount": str(record.amount),
                        "currency": record.currency,
                    },
                )
        return ref

    # =========================================================================
    # Approval workflow
    # =========================================================================

    def approve(self, ref: DocumentRef, capability: Capability) -> PayableDocument:
        return self._transition(ref, PayableAction.APPROVE, capability)

    def reject(
        self,
        ref: DocumentRef,
        capability: Capability,
        reason: str | None = None,
    ) -> PayableDocument:
        return self._transition(ref, PayableAction.REJECT, capability, reason=reason)

    def revert_to_pending(self, ref: DocumentRef, capability: Capability) -> PayableDocument:
        return self._transition(ref, PayableAction.REVERT_TO_PENDING, capability)

    def reopen(self, ref: DocumentRef, capability: Capability) -> PayableDocument:
        """Move a rejected document back to pending for another review."""
        return self._transition(ref, PayableAction.REOPEN, capability)

    def _transition(
        self,
        ref: DocumentRef,
        action: PayableAction,
        capability: Capability,
        *,
        reason: str | None = None,
    ) -> PayableDocument:
        if action in SETTLEMENT_ACTIONS:
            raise ValueError(f"{action.value} is applied by SettlementService only")
        require(capability, ACTION_PERMISSIONS[action])

        with LogContext.bind(actor_id=capability.actor_id, document_ref=ref, operation=action.value):
            with self._unit_of_work(action.value):
                record = self._load_payable(ref)
                previous = PayableStatus(record.status)
                target = next_status(ref.kind, ref.id, previous, action)

                record.status = target.value
                record.updated_by_id = capability.actor_id
                if action is PayableAction.APPROVE:
                    record.approved_by_id = capability.actor_id
                    record.approved_at = self._clock.now()
                elif action is PayableAction.REJECT:
                    record.rejection_reason = reason
                elif action is PayableAction.REVERT_TO_PENDING:
                    record.approved_by_id = None
                    record.approved_at = None
                elif action is PayableAction.REOPEN:
                    record.rejection_reason = None
                self.session.flush()

                logger.info(
                    "payable_status_changed",
                    extra={
                        "kind": ref.kind.value,
                        "document_id": str(ref.id),
                        "from_status": previous.value,
                        "to_status": target.value,
                    },
                )
                return record.to_domain()

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_document(self, ref: DocumentRef, capability: Capability) -> None:
        """
        Delete a payable document.

        A paid document is deleted compensatingly: its account is re-credited
        and its settling transaction and mirrored expense are removed in the
        same unit of work.  That path needs the REVERSE permission; any other
        status needs REQUEST.
        """
        with LogContext.bind(actor_id=capability.actor_id, document_ref=ref, operation="delete"):
            with self._unit_of_work("delete_document"):
                record = self._load_payable(ref)
                status = PayableStatus(record.status)
                if status is PayableStatus.PAID:
                    require(capability, Permission.REVERSE)
                    SettlementService(self.session, self._clock).unwind(record, capability)
                else:
                    require(capability, Permission.REQUEST)
                self.session.delete(record)
                self.session.flush()
                logger.info(
                    "payable_deleted",
                    extra={
                        "kind": ref.kind.value,
                        "document_id": str(ref.id),
                        "status": status.value,
                    },
                )

