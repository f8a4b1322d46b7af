"""
Configuration Loader (``treasury_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``treasury_config.schema``.  Callers use
``treasury_config.get_active_config()`` rather than this module.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Required keys are not silently defaulted; a missing ``config_id`` or
  ``version`` raises ``KeyError``.
* Unknown payable kinds and currencies are rejected with ``ValueError``.
* ``compute_checksum`` gives a deterministic SHA-256 over the raw mapping.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid date  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from treasury_config.schema import (
    AggregatorConfig,
    DatabaseConfig,
    ExpenseConfig,
    RetryConfig,
    TreasuryConfiguration,
)

KNOWN_KINDS = frozenset(
    {"cash_advance", "contractor_certification", "fund_request", "monthly_salary"}
)
KNOWN_CURRENCIES = frozenset({"ARS", "USD"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def _check_kind(kind: str) -> str:
    if kind not in KNOWN_KINDS:
        raise ValueError(f"Unknown payable kind in configuration: {kind!r}")
    return kind


def parse_aggregator(data: dict[str, Any]) -> AggregatorConfig:
    cutoffs = tuple(
        sorted((_check_kind(kind), parse_date(value)) for kind, value in (data.get("cutoffs") or {}).items())
    )
    priority = tuple(_check_kind(kind) for kind in data.get("priority") or ())
    if len(set(priority)) != len(priority):
        raise ValueError(f"Duplicate kind in aggregator priority: {list(priority)}")
    return AggregatorConfig(cutoffs=cutoffs, priority=priority)


def parse_retry(data: dict[str, Any]) -> RetryConfig:
    return RetryConfig(
        max_attempts=int(data.get("max_attempts", 3)),
        backoff_seconds=float(data.get("backoff_seconds", 0.05)),
    )


def parse_expenses(data: dict[str, Any]) -> ExpenseConfig:
    defaults = ExpenseConfig()
    return ExpenseConfig(
        certification_category=data.get("certification_category", defaults.certification_category),
        cash_expense_category=data.get("cash_expense_category", defaults.cash_expense_category),
        document_type=data.get("document_type", defaults.document_type),
        treasury_payment_source=data.get("treasury_payment_source", defaults.treasury_payment_source),
        cash_payment_source=data.get("cash_payment_source", defaults.cash_payment_source),
    )


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=data.get("url", defaults.url),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        pool_timeout=int(data.get("pool_timeout", defaults.pool_timeout)),
    )


def parse_configuration(data: dict[str, Any]) -> TreasuryConfiguration:
    """
    Parse a full configuration mapping.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: on unknown kinds, currencies or bad dates.
    """
    currencies = tuple(data.get("currencies") or sorted(KNOWN_CURRENCIES))
    unknown = set(currencies) - KNOWN_CURRENCIES
    if unknown:
        raise ValueError(f"Unsupported currencies in configuration: {sorted(unknown)}")

    return TreasuryConfiguration(
        config_id=data["config_id"],
        version=int(data["version"]),
        currencies=currencies,
        aggregator=parse_aggregator(data.get("aggregator") or {}),
        retry=parse_retry(data.get("retry") or {}),
        expenses=parse_expenses(data.get("expenses") or {}),
        database=parse_database(data.get("database") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
