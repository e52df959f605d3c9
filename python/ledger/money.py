"""
Money Module

Cents-exact helpers shared by statement import and ledger expansion.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def to_cents(amount: Decimal | str | int | float) -> int:
    """Convert a monetary amount to integer cents.

    Args:
        amount: Amount in currency units (e.g. Decimal("12.34"))

    Returns:
        Signed number of cents

    Raises:
        ValueError: If the amount is not numeric
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Cannot convert amount to cents: {amount}")

    if not value.is_finite():
        raise ValueError(f"Cannot convert amount to cents: {amount}")

    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a 2-decimal Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def cents_to_decimal_string(cents: int) -> str:
    """Format cents as a plain decimal string ("-12.30")."""
    if cents == 0:
        return "0.00"
    return f"{from_cents(cents):.2f}"


def split_cents(total_cents: int, parts: int) -> list[int]:
    """Split a total into parts whose sum is exactly the total.

    The base share is the floor division; the remainder is distributed one cent
    at a time to the first parts, in index order.

    Args:
        total_cents: Non-negative total in cents
        parts: Number of parts

    Returns:
        List of part amounts, empty if parts <= 0
    """
    if parts <= 0:
        return []

    if total_cents < 0:
        return [-part for part in split_cents(-total_cents, parts)]

    base, remainder = divmod(total_cents, parts)
    return [base + (1 if index < remainder else 0) for index in range(parts)]
