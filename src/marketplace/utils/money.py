"""Cent-exact arithmetic for amounts stored as floats.

Amounts are computed with ``Decimal`` rounded half-up to cents and only
converted to ``float`` at the storage boundary.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def quantize(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def money(value) -> float:
    return float(quantize(value))
