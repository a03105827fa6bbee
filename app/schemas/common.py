"""
Shared field types for request and response schemas.

Amounts are decimals with at most two places. On the wire they are JSON
numbers (pydantic would otherwise serialize Decimal as a string). Fifteen
digits in total keeps every amount exact as a JSON number (a double), and
matches MAX_BALANCE_CENTS in app.money.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator, Field, PlainSerializer, StringConstraints


def _upper(value):
    return value.upper() if isinstance(value, str) else value


# ISO 4217 code; "usd" is accepted and normalized to "USD"
Currency = Annotated[
    str,
    BeforeValidator(_upper),
    StringConstraints(pattern=r"^[A-Z]{3}$"),
]

_as_number = PlainSerializer(float, return_type=float, when_used="json")

PositiveAmount = Annotated[
    Decimal,
    Field(gt=0, max_digits=15, decimal_places=2),
    _as_number,
]

NonNegativeAmount = Annotated[
    Decimal,
    Field(ge=0, max_digits=15, decimal_places=2),
    _as_number,
]
