"""
Configuration schema (``treasury_config.schema``).

Frozen dataclasses that the YAML configuration set parses into.  Pure data;
no parsing or validation logic beyond field types lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class AggregatorConfig:
    """Payment queue settings.

    ``cutoffs`` maps a payable kind value (e.g. ``"fund_request"``) to the
    earliest reference date shown in the queue.
    """

    cutoffs: tuple[tuple[str, date], ...] = ()
    priority: tuple[str, ...] = ()


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    backoff_seconds: float = 0.05


@dataclass(frozen=True)
class ExpenseConfig:
    """Defaults stamped on mirrored project expenses."""

    certification_category: str = "CAT-02"
    cash_expense_category: str = "CAT-04"
    document_type: str = "Recibo Común"
    treasury_payment_source: str = "Tesorería"
    cash_payment_source: str = "Caja"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///treasury.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class TreasuryConfiguration:
    """The complete, validated configuration set."""

    config_id: str
    version: int
    currencies: tuple[str, ...]
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    expenses: ExpenseConfig = field(default_factory=ExpenseConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    checksum: str = ""
