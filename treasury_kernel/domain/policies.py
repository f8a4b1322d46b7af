"""
Kernel-side policy objects.

Plain frozen dataclasses the services accept as constructor arguments.
``treasury_config.bridges`` builds them from YAML; tests build them directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping

from treasury_kernel.domain.payables import PayableKind

DEFAULT_VARIANT_PRIORITY: tuple[PayableKind, ...] = (
    PayableKind.MONTHLY_SALARY,
    PayableKind.CONTRACTOR_CERTIFICATION,
    PayableKind.FUND_REQUEST,
    PayableKind.CASH_ADVANCE,
)


@dataclass(frozen=True)
class AggregatorPolicy:
    """
    How the unified payment queue is built.

    cutoffs:
        Per-variant earliest reference date shown in the queue ("only show
        this period onward").  Variants without an entry are not filtered.
    priority:
        Tie-break order for items sharing a reference date; earlier wins.
    """

    cutoffs: Mapping[PayableKind, date] = field(
        default_factory=lambda: MappingProxyType({})
    )
    priority: tuple[PayableKind, ...] = DEFAULT_VARIANT_PRIORITY

    def __post_init__(self) -> None:
        missing = set(PayableKind) - set(self.priority)
        if missing:
            raise ValueError(
                "Variant priority must rank every payable kind; missing: "
                + ", ".join(sorted(k.value for k in missing))
            )
        object.__setattr__(self, "cutoffs", MappingProxyType(dict(self.cutoffs)))

    def rank(self, kind: PayableKind) -> int:
        return self.priority.index(kind)

    def cutoff_for(self, kind: PayableKind) -> date | None:
        return self.cutoffs.get(kind)


@dataclass(frozen=True)
class ExpenseMirrorPolicy:
    """Defaults stamped on project expenses created by the ledger."""

    certification_category: str = "CAT-02"
    cash_expense_category: str = "CAT-04"
    document_type: str = "Recibo Común"
    treasury_payment_source: str = "Tesorería"
    cash_payment_source: str = "Caja"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for retryable failures (conflicts, storage outages)."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")
