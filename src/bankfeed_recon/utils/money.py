"""Currency-aware decimal helpers used by the matcher."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

# Amounts within this absolute difference are treated as equal.
AMOUNT_TOLERANCE = Decimal("0.01")

# Minor-unit exponents for currencies that do not use two decimals.
_CURRENCY_EXPONENTS = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "IDR": 0,
    "CLP": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "JOD": 3,
    "TND": 3,
}


def minor_unit(currency: Optional[str]) -> Decimal:
    """Return the smallest representable amount for a currency (0.01 by default)."""
    exponent = _CURRENCY_EXPONENTS.get((currency or "").upper(), 2)
    return Decimal(1).scaleb(-exponent)


def quantize(amount: Decimal, currency: Optional[str] = None) -> Decimal:
    """Round an amount to the currency's minor unit."""
    return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a loosely typed value into a Decimal.

    Floats go through ``str`` so that 1500.1 stays 1500.1 rather than its
    binary expansion.

    Raises:
        ValueError: If the value cannot be interpreted as a number
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Not a numeric amount: {value!r}") from e


def amounts_equal(
    a: Decimal,
    b: Decimal,
    currency: Optional[str] = None,
    tolerance: Decimal = AMOUNT_TOLERANCE,
) -> bool:
    """Compare absolute amounts after rounding to the currency's minor unit."""
    diff = abs(quantize(abs(a), currency) - quantize(abs(b), currency))
    return diff <= max(tolerance, Decimal(0))


def amounts_close(a: Decimal, b: Decimal, percent: float) -> bool:
    """
    Check whether two absolute amounts differ by at most ``percent`` of the larger.

    Two zero amounts are close.
    """
    a, b = abs(a), abs(b)
    larger = max(a, b)
    if larger == 0:
        return True
    return abs(a - b) / larger <= Decimal(str(percent)) / Decimal(100)
