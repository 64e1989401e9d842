"""Guinean franc arithmetic and display.

GNF has no subunit, so every amount the system stores is a whole number.
Fractions only appear transiently (percentages, tax rates) and are rounded
half-up, the way the agency's reference spreadsheets do it.
"""

from decimal import Decimal, ROUND_FLOOR

# fr-FR groups thousands with a narrow no-break space
_GROUP_SEPARATOR = "\u202f"
_HALF = Decimal("0.5")


def to_decimal(value: int | float | Decimal) -> Decimal:
    """Exact decimal for a rate or amount (floats go through str to drop binary noise)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


def round_gnf(value: int | float | Decimal) -> int:
    """
    Round to the nearest whole franc, halves going up (2.5 -> 3, -2.5 -> -2).

    Args:
        value: Amount, possibly fractional

    Returns:
        Whole GNF amount
    """
    if isinstance(value, int):
        return value
    return int((to_decimal(value) + _HALF).to_integral_value(rounding=ROUND_FLOOR))


def format_gnf(amount: int | float | Decimal | None, with_currency: bool = True) -> str:
    """
    Render an amount the way invoices and timeline entries show it.

    >>> format_gnf(15750000)
    '15 750 000 GNF'
    """
    if amount is None:
        return "—"

    whole = round_gnf(amount)
    digits = f"{abs(whole):,}".replace(",", _GROUP_SEPARATOR)
    text = f"-{digits}" if whole < 0 else digits
    return f"{text} GNF" if with_currency else text
