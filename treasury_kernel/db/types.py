"""
Module: treasury_kernel.db.types
Responsibility: Currency validation and the single sanctioned rounding
    function for monetary values.
Architecture position: Kernel > DB.  May be imported by every other kernel
    layer; imports nothing from them except exceptions.

Invariants enforced:
    - Only currencies the business operates in (ARS, USD) are accepted.
    - Monetary amounts are Decimal, never float.
    - round_money() is the only rounding path for money.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from treasury_kernel.exceptions import InvalidAmountError, InvalidCurrencyError

SUPPORTED_CURRENCIES: frozenset[str] = frozenset({"ARS", "USD"})

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value to the given number of decimal places."""
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def validate_currency(currency: str) -> str:
    """
    Validate and normalize a currency code.

    Returns:
        The uppercase, stripped code.

    Raises:
        InvalidCurrencyError: If the code is not one of SUPPORTED_CURRENCIES.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))
    normalized = currency.upper().strip()
    if normalized not in SUPPORTED_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized


def _parse_amount(value: Decimal | int | str) -> Decimal:
    if isinstance(value, (float, bool)):
        raise InvalidAmountError(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(value) from exc
    if not amount.is_finite():
        raise InvalidAmountError(value)
    return amount


def to_amount(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied amount into a strictly positive Decimal.

    Floats are rejected outright; binary fractions have no place in a ledger.

    Raises:
        InvalidAmountError: If the value is not a finite positive number.
    """
    amount = _parse_amount(value)
    if amount <= 0:
        raise InvalidAmountError(value)
    return amount


def to_non_negative_amount(value: Decimal | int | str) -> Decimal:
    """Like to_amount, but zero is accepted (opening balances, deductions)."""
    amount = _parse_amount(value)
    if amount < 0:
        raise InvalidAmountError(value)
    return amount
