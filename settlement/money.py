"""
Decimal Arithmetic for the Settlement Engine

All monetary and share values are Decimal. Values are built from strings so
binary floating point never leaks into a calculation. Rounding happens only
where a step explicitly asks for it.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

# Tolerance for money invariant checks (sum of distribution == total)
MONEY_EPSILON = Decimal('0.0001')

# A distribution share list must sum to 1 within this tolerance
SHARE_SUM_TOLERANCE = Decimal('0.0001')

# Registry shares are percentages rounded to 4 decimal places
SHARE_PLACES = Decimal('0.0001')

# Max drift of a facility's total share introduced by one transfer
TRANSFER_DRIFT_TOLERANCE = Decimal('0.0001')

# Currency minor unit (cents)
MINOR_UNIT = Decimal('0.01')

FULL_OWNERSHIP = Decimal('100')

ZERO = Decimal('0')


def to_decimal(value) -> Decimal:
    """Convert an int, float, str or Decimal to Decimal via its string form."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric value: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a numeric value: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places (ROUND_HALF_UP)."""
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def floor_to_unit(value: Decimal, unit: Decimal = MINOR_UNIT) -> Decimal:
    """Round toward zero to a whole number of `unit`."""
    return value.quantize(unit, rounding=ROUND_DOWN)


def quantize_share(value: Decimal) -> Decimal:
    """Round an ownership percentage to 4 decimal places (ROUND_HALF_UP)."""
    return value.quantize(SHARE_PLACES, rounding=ROUND_HALF_UP)


def is_close(a: Decimal, b: Decimal, tolerance: Decimal = MONEY_EPSILON) -> bool:
    return abs(a - b) <= tolerance


def format_amount(value: Decimal) -> str:
    """Format a Decimal with exactly two decimals, no grouping, for export files."""
    return f"{quantize_money(value):f}"


def normalize(value: Decimal) -> str:
    """
    Canonical string for a Decimal.

    Semantically equal values give the same text: Decimal("1.0") and
    Decimal("1.00") both become "1". Never uses scientific notation.
    """
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')
