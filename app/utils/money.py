"""
Monetary helpers.

All billing amounts are ``Decimal`` values rounded to the cent with
round-half-away-from-zero, applied at every derived step.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal('0.01')
ZERO = Decimal('0')


def to_decimal(value):
    """Convert an int, float, str or Decimal into a Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal('0.1')``
    rather than its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError('Booleans are not monetary values')
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f'Not a numeric value: {value!r}')


def round2(value):
    """Round to 2 decimals, halves away from zero (1.005 -> 1.01, -1.005 -> -1.01)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def has_cents_only(value):
    """True when ``value`` carries no precision below the cent."""
    value = to_decimal(value)
    return value == value.quantize(CENT)
