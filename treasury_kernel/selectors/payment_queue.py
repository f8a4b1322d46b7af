"""
Module: treasury_kernel.selectors.payment_queue
Responsibility: The unified queue of approved payables ("pagos pendientes")
    that treasury operators work through, merged across all four variants.
Architecture position: Kernel > Selectors.  Reads the payable tables,
    converts rows to domain variants, and projects them into queue items.

Invariants enforced:
    - Read-only and idempotent: the same data yields the same queue.
    - Only APPROVED documents appear.
    - Per-variant cutoffs come from AggregatorPolicy (configuration), never
      from literals here.  A document whose reference date is earlier than
      its variant's cutoff is left out.
    - Order is (reference date, variant priority, id).  A salary's
      reference date is the first day of its period.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from treasury_kernel.domain.payables import (
    DocumentRef,
    PayableDocument,
    PayableKind,
    PayableStatus,
    describe,
    reference_date,
)
from treasury_kernel.domain.policies import AggregatorPolicy
from treasury_kernel.domain.values import Money
from treasury_kernel.models.payable import RECORD_TYPES
from treasury_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class PaymentQueueItem:
    """One approved obligation waiting to be paid."""

    id: UUID
    source_variant: PayableKind
    title: str
    subtitle: str
    beneficiary: str
    amount: Decimal
    currency: str
    date: date

    @property
    def ref(self) -> DocumentRef:
        return DocumentRef(kind=self.source_variant, id=self.id)

    @property
    def money(self) -> Money:
        return Money(amount=self.amount, currency=self.currency)


@dataclass(frozen=True)
class PaymentQueue:
    """Ordered queue plus the amount owed per currency."""

    items: tuple[PaymentQueueItem, ...]
    totals: dict[str, Money] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


class UnifiedPaymentAggregator(BaseSelector):
    """Builds the payment queue from every variant's approved subset."""

    def __init__(self, session: Session, policy: AggregatorPolicy | None = None):
        super().__init__(session)
        self._policy = policy or AggregatorPolicy()

    def approved_documents(self, kind: PayableKind) -> list[PayableDocument]:
        model = RECORD_TYPES[kind]
        rows = self.session.execute(
            select(model).where(model.status == PayableStatus.APPROVED.value)
        ).scalars()
        return [row.to_domain() for row in rows]

    def _include(self, document: PayableDocument) -> bool:
        cutoff = self._policy.cutoff_for(document.kind)
        return cutoff is None or reference_date(document) >= cutoff

    def _project(self, document: PayableDocument) -> PaymentQueueItem:
        title, subtitle = describe(document)
        return PaymentQueueItem(
            id=document.id,
            source_variant=document.kind,
            title=title,
            subtitle=subtitle,
            beneficiary=document.beneficiary_ref,
            amount=document.amount.amount,
            currency=document.amount.currency,
            date=reference_date(document),
        )

    def build_queue(self) -> PaymentQueue:
        items = [
            self._project(document)
            for kind in self._policy.priority
            for document in self.approved_documents(kind)
            if self._include(document)
        ]
        items.sort(key=lambda i: (i.date, self._policy.rank(i.source_variant), str(i.id)))

        totals: dict[str, Money] = {}
        for item in items:
            totals[item.currency] = totals.get(item.currency, Money.zero(item.currency)) + item.money
        return PaymentQueue(items=tuple(items), totals=totals)

    def pending_payments(self) -> list[PaymentQueueItem]:
        """Approved obligations in payment order."""
        return list(self.build_queue().items)
