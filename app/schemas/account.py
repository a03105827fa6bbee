"""
Pydantic schemas for Account endpoints.

Balances travel as a list of {currency, amount} entries, the same shape the
service has always exposed. Requests are rejected if the list names a
currency twice; responses are built from the keyed mapping, sorted by
currency.
"""

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, field_validator

from app.models.account import Account
from app.schemas.common import Currency, NonNegativeAmount

Owner = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class BalanceEntry(BaseModel):
    """One currency balance."""
    currency: Currency
    amount: NonNegativeAmount


def _unique_currencies(entries: list[BalanceEntry]) -> list[BalanceEntry]:
    seen = set()
    for entry in entries:
        if entry.currency in seen:
            raise ValueError(f"Currency {entry.currency} appears more than once")
        seen.add(entry.currency)
    return entries


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    owner: Owner
    balance: list[BalanceEntry] = Field(default_factory=list)

    @field_validator("balance")
    @classmethod
    def currencies_must_be_unique(cls, value):
        return _unique_currencies(value)


class AccountUpdateRequest(BaseModel):
    """
    Request body for PUT /accounts/{id}.

    Both fields are required: the update replaces the owner and the whole
    balance set, it does not merge.
    """
    owner: Owner
    balance: list[BalanceEntry]

    @field_validator("balance")
    @classmethod
    def currencies_must_be_unique(cls, value):
        return _unique_currencies(value)


class AccountResponse(BaseModel):
    """Public representation of an account."""
    id: uuid.UUID
    owner: str
    balance: list[BalanceEntry]
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            owner=account.owner,
            balance=[
                BalanceEntry(currency=currency, amount=entry.amount)
                for currency, entry in sorted(account.balances.items())
            ],
            created_at=account.created_at,
            updated_at=account.updated_at,
        )
