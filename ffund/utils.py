"""
Utility functions for the ffund allocation engine.

Money helpers keep every comparison in ``Decimal`` rounded to the
configured number of places.
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from ffund.constants import (
    DEFAULT_CURRENCY_SYMBOL,
    get_currency_places,
    get_currency_tolerance,
    get_date_formats,
)

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """
    Convert a user supplied number to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its
    binary expansion.

    Returns:
        The Decimal value, or None when the value is None, blank or not numeric.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str) and not value.strip():
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def round_money(value: Number, places: Optional[int] = None) -> Decimal:
    """
    Round a currency amount half-up to the configured number of places.

    Args:
        value: Amount to round.
        places: Decimal places. Defaults to config value.

    Returns:
        The rounded Decimal.
    """
    if places is None:
        places = get_currency_places()
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    quantum = Decimal(1).scaleb(-places)
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def floor_money(value: Number, places: Optional[int] = None) -> Decimal:
    """Round a currency amount down, so a limit never grows past its exact value."""
    if places is None:
        places = get_currency_places()
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_FLOOR)


def sum_money(values: Iterable[Number]) -> Decimal:
    """Sum currency amounts and round the total."""
    total = Decimal("0")
    for value in values:
        total += value if isinstance(value, Decimal) else Decimal(str(value))
    return round_money(total)


def money_equal(a: Number, b: Number, tolerance: Optional[Decimal] = None) -> bool:
    """
    Compare two currency amounts within tolerance.

    Both sides are rounded before the absolute difference is taken.
    """
    if tolerance is None:
        tolerance = get_currency_tolerance()
    return abs(round_money(a) - round_money(b)) <= tolerance


def format_currency(value: Optional[Number]) -> str:
    """
    Format an amount for display, e.g. ``$1,250.00``.

    Unparseable values render as ``$0.00``.
    """
    amount = to_decimal(value)
    if amount is None:
        amount = Decimal("0")
    return f"{DEFAULT_CURRENCY_SYMBOL}{round_money(amount):,}"


def percentage(part: Number, whole: Number, precision: int = 1) -> float:
    """Return ``part`` as a percentage of ``whole``; 0.0 when whole is zero."""
    whole_d = Decimal(str(whole))
    if whole_d == 0:
        return 0.0
    return round(float(Decimal(str(part)) / whole_d * 100), precision)


def parse_date(date_string: str) -> Optional[date]:
    """
    Parse a date string using multiple supported formats.

    Args:
        date_string: The date string to parse.

    Returns:
        A date object if parsing succeeds, None otherwise.

    Examples:
        >>> parse_date("2024-12-31")  # ISO 8601
        >>> parse_date("31/12/2024")  # DD/MM/YYYY
        >>> parse_date("31 December 2024")  # DD Month YYYY
    """
    for fmt in get_date_formats():
        try:
            return datetime.strptime(date_string, fmt).date()
        except ValueError:
            continue
    return None


def add_days(start: date, days: int) -> date:
    """Return the date ``days`` after ``start``."""
    return start + timedelta(days=days)


def format_date(value: date) -> str:
    """
    Format a date to the standard ISO 8601 format.

    Args:
        value: The date to format.

    Returns:
        A string in YYYY-MM-DD format.
    """
    return value.strftime("%Y-%m-%d")
