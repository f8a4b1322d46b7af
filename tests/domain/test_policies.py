"""
Policy objects and capability tokens.
"""

from datetime import date
from uuid import uuid4

import pytest

from treasury_kernel.domain.capability import Permission, StaticCapability, require
from treasury_kernel.domain.payables import PayableKind
from treasury_kernel.domain.policies import (
    DEFAULT_VARIANT_PRIORITY,
    AggregatorPolicy,
    RetryPolicy,
)
from treasury_kernel.exceptions import AuthorizationError


class TestAggregatorPolicy:
    def test_default_priority_order(self):
        assert DEFAULT_VARIANT_PRIORITY[0] is PayableKind.MONTHLY_SALARY
        assert DEFAULT_VARIANT_PRIORITY[-1] is PayableKind.CASH_ADVANCE
        policy = AggregatorPolicy()
        assert policy.rank(PayableKind.MONTHLY_SALARY) < policy.rank(PayableKind.FUND_REQUEST)

    def test_priority_must_rank_every_kind(self):
        with pytest.raises(ValueError, match="cash_advance"):
            AggregatorPolicy(priority=DEFAULT_VARIANT_PRIORITY[:-1])

    def test_cutoffs_are_read_only(self):
        source = {PayableKind.FUND_REQUEST: date(2026, 2, 17)}
        policy = AggregatorPolicy(cutoffs=source)
        source[PayableKind.CASH_ADVANCE] = date(2030, 1, 1)
        assert policy.cutoff_for(PayableKind.CASH_ADVANCE) is None
        with pytest.raises(TypeError):
            policy.cutoffs[PayableKind.MONTHLY_SALARY] = date(2026, 1, 1)


class TestRetryPolicy:
    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_invalid_backoff(self):
        with pytest.raises(ValueError):
            RetryPolicy(backoff_seconds=-1)


class TestCapability:
    def test_full_allows_everything(self):
        cap = StaticCapability.full(uuid4())
        assert all(cap.allows(p) for p in Permission)

    def test_require_raises_with_fields(self):
        cap = StaticCapability(actor_id=uuid4(), permissions=frozenset({Permission.REQUEST}))
        with pytest.raises(AuthorizationError) as exc_info:
            require(cap, Permission.SETTLE)
        assert exc_info.value.permission == Permission.SETTLE.value
        assert exc_info.value.actor_id == str(cap.actor_id)
