"""
BaseService -- shared constructor and row loading for kernel services.

Every mutating service receives the caller's Session and a Clock.  Public
operations run inside ``self._unit_of_work(name)``, which commits on success
when ``auto_commit`` is True; internal helpers only flush.

Rows are always loaded with ``populate_existing``, so status and balance
checks (and plain reads) see the latest committed values even though
sessions do not expire on commit.  Rows an operation will change are also
locked ``FOR UPDATE``.  SQLite ignores the row lock; the version counters
on Account and the payable tables still reject a lost update at flush time.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.payables import DocumentRef
from treasury_kernel.exceptions import AccountNotFoundError, DocumentNotFoundError
from treasury_kernel.models.account import Account
from treasury_kernel.models.payable import RECORD_TYPES, PayableRecord
from treasury_kernel.services.unit_of_work import unit_of_work


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Args:
        session: SQLAlchemy session owned by the caller.
        clock: Time source for transaction timestamps (SystemClock default).
        auto_commit: Commit each public operation.  Pass False to compose
            several operations into one caller-owned transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        auto_commit: bool = True,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit

    def _unit_of_work(self, operation: str):
        return unit_of_work(self.session, operation, auto_commit=self._auto_commit)

    def _load_account(self, account_id: UUID, *, for_update: bool = True) -> Account:
        stmt = select(Account).where(Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        account = self.session.execute(stmt).scalars().first()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _load_payable(self, ref: DocumentRef, *, for_update: bool = True) -> PayableRecord:
        model = RECORD_TYPES[ref.kind]
        stmt = select(model).where(model.id == ref.id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        record = self.session.execute(stmt).scalars().first()
        if record is None:
            raise DocumentNotFoundError(ref.kind.value, str(ref.id))
        return record
