"""
Config -> Kernel bridges.

Convert the parsed configuration into the policy objects kernel services
accept.  They live here because the kernel never imports treasury_config.

Usage:
    config = get_active_config()
    aggregator = UnifiedPaymentAggregator(session, build_aggregator_policy(config))
"""

from __future__ import annotations

from treasury_config.schema import TreasuryConfiguration
from treasury_kernel.domain.payables import PayableKind
from treasury_kernel.domain.policies import (
    DEFAULT_VARIANT_PRIORITY,
    AggregatorPolicy,
    ExpenseMirrorPolicy,
    RetryPolicy,
)


def build_aggregator_policy(config: TreasuryConfiguration) -> AggregatorPolicy:
    """Per-variant cutoffs and priority for the payment queue."""
    priority = (
        tuple(PayableKind(kind) for kind in config.aggregator.priority)
        if config.aggregator.priority
        else DEFAULT_VARIANT_PRIORITY
    )
    return AggregatorPolicy(
        cutoffs={PayableKind(kind): cutoff for kind, cutoff in config.aggregator.cutoffs},
        priority=priority,
    )


def build_retry_policy(config: TreasuryConfiguration) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.retry.max_attempts,
        backoff_seconds=config.retry.backoff_seconds,
    )


def build_expense_policy(config: TreasuryConfiguration) -> ExpenseMirrorPolicy:
    e = config.expenses
    return ExpenseMirrorPolicy(
        certification_category=e.certification_category,
        cash_expense_category=e.cash_expense_category,
        document_type=e.document_type,
        treasury_payment_source=e.treasury_payment_source,
        cash_payment_source=e.cash_payment_source,
    )


def database_settings(config: TreasuryConfiguration) -> dict:
    """Keyword arguments for ``treasury_kernel.db.engine.init_engine_from_url``."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_timeout": db.pool_timeout,
    }
