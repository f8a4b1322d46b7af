"""
Values -- immutable, self-validating money types.

Responsibility:
    Money pairs a Decimal amount with a currency code and refuses to mix
    currencies.  ExchangeRate converts between the two currencies the
    business operates in.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - InvalidCurrencyError on an unsupported currency code.
    - CurrencyMismatchError when arithmetic or comparison mixes currencies.
    - InvalidAmountError on a non-positive exchange rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from treasury_kernel.db.types import round_money, validate_currency
from treasury_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
)


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Amount and currency are never separated.  Arithmetic and comparison
        require the same currency.

    Non-goals:
        - Does NOT auto-round; callers use ``round()`` explicitly.
        - Does NOT convert; use ``ExchangeRate.convert``.
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, float):
            raise InvalidAmountError(self.amount)
        if not isinstance(self.amount, Decimal):
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise InvalidAmountError(self.amount) from e
        object.__setattr__(self, "currency", validate_currency(self.currency))

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str) -> Money:
        """Factory accepting Decimal, str or int amounts."""
        return cls(amount=Decimal(str(amount)), currency=currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        """Create a zero amount in the given currency."""
        return cls(amount=Decimal("0"), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to two decimal places (both ARS and USD use cents)."""
        return Money(amount=round_money(self.amount, rounding=rounding), currency=self.currency)

    def _check(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate: 1 unit of ``from_currency`` = ``rate`` units of ``to_currency``.

    Supplied explicitly by the operator when a document is paid from an
    account in another currency; the kernel never looks rates up itself.
    """

    from_currency: str
    to_currency: str
    rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_currency", validate_currency(self.from_currency))
        object.__setattr__(self, "to_currency", validate_currency(self.to_currency))
        if isinstance(self.rate, float):
            raise InvalidAmountError(self.rate)
        if not isinstance(self.rate, Decimal):
            try:
                object.__setattr__(self, "rate", Decimal(str(self.rate)))
            except (InvalidOperation, ValueError) as e:
                raise InvalidAmountError(self.rate) from e
        if self.rate <= 0:
            raise InvalidAmountError(self.rate)

    @classmethod
    def of(
        cls,
        from_currency: str,
        to_currency: str,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(from_currency=from_currency, to_currency=to_currency, rate=Decimal(str(rate)))

    def convert(self, money: Money) -> Money:
        """
        Convert ``money`` into ``to_currency``, rounded to cents.

        Raises:
            CurrencyMismatchError: If money is not in ``from_currency``.
        """
        if money.currency != self.from_currency:
            raise CurrencyMismatchError(self.from_currency, money.currency)
        return Money(
            amount=round_money(money.amount * self.rate),
            currency=self.to_currency,
        )

    def inverse(self) -> ExchangeRate:
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal("1") / self.rate,
        )

    def __str__(self) -> str:
        return f"{self.from_currency}/{self.to_currency} = {self.rate}"
