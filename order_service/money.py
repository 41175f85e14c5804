"""
money.py — Conversion of Currency Amounts to Integer Minor Units

Clients send prices and totals in major units (e.g. 12.5 for 12,50 €). The
service stores integer cents only. Conversion goes through `decimal` so that
values like 19.99 never pick up binary floating-point drift, and rounds half
away from zero.

Malformed amounts (anything that is not a finite number) are not rejected:
they become 0 and the result is flagged as `coerced`, so callers can log the
leniency instead of failing the order.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple

HUNDRED = Decimal(100)
# Largest amount a BIGINT column holds
MAX_MINOR_UNITS = 2 ** 63 - 1


class MinorUnits(NamedTuple):
    value: int
    coerced: bool = False


def _as_decimal(amount):
    """Returns `amount` as a Decimal, or None if it is not a finite number."""
    # bool is an int subclass, but True is not a price
    if isinstance(amount, bool):
        return None
    if isinstance(amount, Decimal):
        return amount if amount.is_finite() else None
    if isinstance(amount, int):
        return Decimal(amount)
    if isinstance(amount, float):
        if not math.isfinite(amount):
            return None
        # shortest repr: 19.99 stays 19.99 instead of 19.989999...
        return Decimal(repr(amount))
    return None


def _minor_units(scaled: Decimal) -> MinorUnits:
    # beyond BIGINT range the amount cannot be stored: malformed like any other
    if abs(scaled) >= MAX_MINOR_UNITS + Decimal("0.5"):
        return MinorUnits(0, True)
    return MinorUnits(int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP)))


def to_minor_units(amount) -> MinorUnits:
    """
    Converts a major-unit amount to minor units.

    Args:
        amount: int, float or Decimal in major units. Anything else is malformed.

    Returns:
        MinorUnits: `(round(amount * 100), False)`, or `(0, True)` for malformed input
            and for amounts outside the BIGINT range.
    """
    value = _as_decimal(amount)
    if value is None:
        return MinorUnits(0, True)
    return _minor_units(value * HUNDRED)


def to_cents(amount) -> int:
    return to_minor_units(amount).value


def line_total_minor_units(price, qty: int) -> MinorUnits:
    """Total of `qty` units at `price`, rounded once after multiplying."""
    value = _as_decimal(price)
    if value is None:
        return MinorUnits(0, True)
    return _minor_units(value * qty * HUNDRED)


def format_minor_units(cents: int, symbol: str = "€") -> str:
    """Formats cents the German way: 1234 -> '12,34 €'."""
    sign = "-" if cents < 0 else ""
    euros, rest = divmod(abs(cents), 100)
    return f"{sign}{euros},{rest:02d} {symbol}"
