"""
Unit of work -- the commit boundary for every mutating kernel operation.

Responsibility:
    Wraps one operation's flushes in a single database transaction and
    translates SQLAlchemy failures into the kernel's typed errors.  Also
    hosts ``run_with_retry``, which re-runs an operation that failed with a
    retryable error.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Services flush;
    this module is the only place that calls ``session.commit()`` or
    ``session.rollback()``.

Invariants enforced:
    - All-or-nothing: any exception inside the block rolls the session back
      (when ``auto_commit`` is True), so no balance, transaction, document
      or expense change survives a failed operation.
    - Error translation:
        StaleDataError            -> ConcurrencyConflictError
        IntegrityError (unique)   -> ConcurrencyConflictError
        IntegrityError (other)    -> ConstraintViolationError
        OperationalError/DBAPIError -> StorageUnavailableError

Failure modes:
    - ConcurrencyConflictError / StorageUnavailableError (both retryable).
    - ConstraintViolationError (not retryable).
    - Any TreasuryKernelError raised inside the block propagates unchanged
      after rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from treasury_kernel.domain.policies import RetryPolicy
from treasury_kernel.exceptions import (
    ConcurrencyConflictError,
    ConstraintViolationError,
    StorageUnavailableError,
    TreasuryKernelError,
)
from treasury_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")

T = TypeVar("T")

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION_PGCODE = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True when a unique key rejected the write (another writer got there first)."""
    if getattr(exc.orig, "pgcode", None) == UNIQUE_VIOLATION_PGCODE:
        return True
    # sqlite3 reports constraint kinds only in the message
    return "UNIQUE constraint failed" in str(exc.orig)


@contextmanager
def unit_of_work(
    session: Session,
    operation: str,
    *,
    auto_commit: bool = True,
) -> Iterator[Session]:
    """
    Run the enclosed block as one database transaction.

    With ``auto_commit=False`` the block is flushed but neither committed
    nor rolled back; the caller owns the transaction (used when several
    kernel operations must land together, and by tests).

    Raises:
        ConcurrencyConflictError: A version counter or unique key lost a race.
        ConstraintViolationError: A check or foreign-key constraint failed.
        StorageUnavailableError: The database failed to complete the work.
    """
    try:
        yield session
        if auto_commit:
            session.commit()
        else:
            session.flush()
    except TreasuryKernelError:
        if auto_commit:
            session.rollback()
        raise
    except StaleDataError as exc:
        if auto_commit:
            session.rollback()
        logger.warning("unit_of_work_conflict", extra={"operation": operation})
        raise ConcurrencyConflictError(entity_type=operation) from exc
    except IntegrityError as exc:
        if auto_commit:
            session.rollback()
        if _is_unique_violation(exc):
            logger.warning("unit_of_work_integrity_conflict", extra={"operation": operation})
            raise ConcurrencyConflictError(entity_type=operation) from exc
        detail = str(exc.orig or "")
        logger.error(
            "unit_of_work_constraint_violation",
            extra={"operation": operation, "detail": detail},
        )
        raise ConstraintViolationError(operation=operation, detail=detail) from exc
    except (OperationalError, DBAPIError) as exc:
        if auto_commit:
            session.rollback()
        logger.error(
            "unit_of_work_storage_failure",
            extra={"operation": operation, "detail": str(exc.orig) if exc.orig else ""},
        )
        raise StorageUnavailableError(operation=operation, detail=str(exc.orig or "")) from exc
    except Exception:
        if auto_commit:
            session.rollback()
        raise


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``operation`` until it succeeds or fails with a non-retryable error.

    ``operation`` must be safe to call again from scratch: it should open
    its own session (or reuse one that the failed attempt rolled back) and
    re-read everything it needs.  A retried settlement that finds its
    document already paid fails with InvalidStateTransitionError, which is
    not retryable, so retries never double-pay.

    Raises:
        The last retryable error once ``policy.max_attempts`` is exhausted,
        or the first non-retryable error.
    """
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        try:
            return operation()
        except TreasuryKernelError as exc:
            if not exc.retryable or attempt >= policy.max_attempts:
                raise
            logger.warning(
                "operation_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "error_code": exc.code,
                },
            )
            sleep(policy.backoff_seconds * attempt)
            attempt += 1
