"""
Invoice number formatting.

Format: FAC-YYYY-NNNN, one sequence per company per calendar year. The
sequence restarts implicitly every January because the prefix changes.

Nothing here keeps state: the next number is always derived from the highest
number already stored (see InvoiceService._next_number).
"""

import re

_LEADING_DIGITS = re.compile(r"\d+")


def year_prefix(year: int, prefix: str = "FAC") -> str:
    """Prefix shared by every invoice number of `year`, e.g. 'FAC-2026-'."""
    return f"{prefix}-{year}-"


def format_invoice_number(year: int, sequence: int, prefix: str = "FAC", width: int = 4) -> str:
    """Build an invoice number from its parts."""
    if sequence < 1:
        raise ValueError(f"Invoice sequence must be positive, got {sequence}")
    return f"{year_prefix(year, prefix)}{sequence:0{width}d}"


def parse_sequence(invoice_number: str, year: int, prefix: str = "FAC") -> int | None:
    """
    Sequence part of an invoice number of `year`.

    Returns None when the number belongs to another year/prefix or its suffix
    does not start with digits.
    """
    head = year_prefix(year, prefix)
    if not invoice_number.startswith(head):
        return None

    match = _LEADING_DIGITS.match(invoice_number[len(head):])
    if match is None:
        return None
    return int(match.group())


def next_invoice_number(
    last_number: str | None,
    year: int,
    prefix: str = "FAC",
    width: int = 4,
) -> str:
    """
    Number following `last_number` in the sequence of `year`.

    Args:
        last_number: Highest number already stored for this company and year,
            or None for the first invoice of the year
        year: Calendar year of the new invoice

    Returns:
        The next invoice number ('FAC-2026-0001' when starting fresh)
    """
    sequence = 1
    if last_number is not None:
        last = parse_sequence(last_number, year, prefix)
        if last is not None:
            sequence = last + 1

    return format_invoice_number(year, sequence, prefix, width)
