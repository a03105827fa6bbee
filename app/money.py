"""
Conversions between API amounts and stored integer cents.

Amounts travel through the API as decimals with at most two places
(e.g. 10.50) and are stored as integer minor units (1050). Integer storage
keeps every addition and subtraction exact, independent of the database
backend's decimal support.
"""

from decimal import Decimal

CENTS = Decimal("100")

# Largest balance an account may hold in one currency: 9,999,999,999,999.99.
# Fifteen significant digits, so every amount survives the JSON number
# round trip exactly.
MAX_BALANCE_CENTS = 999_999_999_999_999


def to_cents(amount: Decimal) -> int:
    """
    Convert a decimal amount to integer cents.

    Raises:
        ValueError: If the amount has more than two decimal places.
    """
    cents = amount * CENTS
    if cents != cents.to_integral_value():
        raise ValueError(f"Amount {amount} has more than two decimal places")
    return int(cents)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place decimal amount."""
    return (Decimal(cents) / CENTS).quantize(Decimal("0.01"))
