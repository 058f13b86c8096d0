"""Decimal helpers for currency amounts."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Coerce ints, floats, strings or Decimals to a 2-place Decimal."""

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_cent_precise(value) -> bool:
    """True when ``value`` is a finite amount with at most two decimal places."""

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.is_finite() and value == value.quantize(CENT)
