"""Decimal utilities for per-acre money and bushel arithmetic.

Costs are summed across many usage records before they are divided by acres,
and every scenario cell is rounded to cents on its own. Doing that in binary
floating point drifts by a cent here and there, so every monetary and bushel
quantity in the package is a :class:`decimal.Decimal`.

Example:
    Convert a float price and round to the nearest nickel::

        from grain_profit.decimal_utils import round_to_increment, to_decimal

        price = to_decimal(4.66) * to_decimal("0.60")
        round_to_increment(price, "0.05")  # Decimal('2.80')
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

# Standard precision for money (2 decimal places = cents)
CURRENCY_PLACES = Decimal("0.01")

ZERO = Decimal("0.00")

Numeric = Union[Decimal, float, int, str]


def to_decimal(value: Union[float, int, str, Decimal, None]) -> Decimal:
    """Convert a numeric value to Decimal.

    Floats are converted via their string representation to avoid binary
    floating point artifacts.

    Args:
        value: Numeric value to convert. None is converted to zero.

    Returns:
        Decimal representation of the value.

    Example:
        >>> to_decimal(11.2)
        Decimal('11.2')
        >>> to_decimal(None)
        Decimal('0.00')
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean values are not numeric amounts")
    if isinstance(value, float):
        # Round first to avoid artifacts like 0.1 -> 0.10000000000000001
        return Decimal(str(round(value, 10)))
    return Decimal(value)


def quantize_currency(value: Numeric) -> Decimal:
    """Quantize a value to currency precision (2 decimal places).

    Rounds half away from zero, matching how the displayed grid has always
    been rounded.

    Args:
        value: Numeric value to quantize.

    Returns:
        Decimal rounded to 2 decimal places.

    Example:
        >>> quantize_currency(Decimal("1234.565"))
        Decimal('1234.57')
    """
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    return value.quantize(CURRENCY_PLACES, rounding=ROUND_HALF_UP)


def round_whole(value: Numeric) -> int:
    """Round to the nearest whole number, halves rounding up."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_to_increment(value: Numeric, increment: Numeric) -> Decimal:
    """Round a value to the nearest multiple of ``increment``.

    Used for price ladders quoted in nickels or dimes.

    Args:
        value: Value to round.
        increment: Positive rounding step, e.g. ``Decimal("0.05")``.

    Returns:
        The nearest multiple of ``increment``, quantized to cents.

    Raises:
        ValueError: If increment is not positive.

    Example:
        >>> round_to_increment(Decimal("4.66"), Decimal("0.05"))
        Decimal('4.65')
        >>> round_to_increment(Decimal("6.72"), Decimal("0.10"))
        Decimal('6.70')
    """
    step = to_decimal(increment)
    if step <= ZERO:
        raise ValueError(f"Rounding increment must be positive, got {step}")
    units = (to_decimal(value) / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return quantize_currency(units * step)


def clamp(value: Numeric, lower: Numeric, upper: Numeric) -> Decimal:
    """Clamp ``value`` into ``[lower, upper]``."""
    return max(to_decimal(lower), min(to_decimal(value), to_decimal(upper)))


def sum_decimals(*values: Numeric) -> Decimal:
    """Sum multiple values with Decimal precision.

    Example:
        >>> sum_decimals(0.1, 0.2, 0.3)
        Decimal('0.6')
    """
    return sum((to_decimal(v) for v in values), Decimal("0"))


def safe_divide(
    numerator: Numeric,
    denominator: Numeric,
    default: Numeric = ZERO,
) -> Decimal:
    """Safely divide two values, returning default if denominator is zero.

    Args:
        numerator: Value to divide.
        denominator: Value to divide by.
        default: Value to return if denominator is zero.

    Returns:
        Result of division, or default if denominator is zero.

    Example:
        >>> safe_divide(100, 4)
        Decimal('25')
        >>> safe_divide(100, 0)
        Decimal('0.00')
    """
    num = to_decimal(numerator)
    denom = to_decimal(denominator)

    if denom == ZERO:
        return to_decimal(default)

    return num / denom
