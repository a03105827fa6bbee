"""
Pydantic schemas for Transaction endpoints.

Field names on the wire are camelCase where the published contract uses
camelCase (transactionType); everything else is a single word.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.transaction import Transaction, TransactionType
from app.schemas.common import Currency, NonNegativeAmount, PositiveAmount


class TransactionCreateRequest(BaseModel):
    """Request body for POST /transaction."""
    model_config = ConfigDict(populate_by_name=True)

    account: uuid.UUID
    amount: PositiveAmount
    transaction_type: TransactionType = Field(alias="transactionType")
    currency: Currency


class TransactionResponse(BaseModel):
    """
    Public representation of a ledger entry.

    `balance` is the account's balance in `currency` right after this
    transaction was applied — a snapshot, not the current balance.
    """
    id: uuid.UUID
    account: uuid.UUID
    amount: PositiveAmount
    transaction_type: TransactionType = Field(serialization_alias="transactionType")
    currency: str
    balance: NonNegativeAmount
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """SQLite hands back naive datetimes; every stored timestamp is UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "TransactionResponse":
        return cls(
            id=txn.id,
            account=txn.account_id,
            amount=txn.amount,
            transaction_type=txn.transaction_type,
            currency=txn.currency,
            balance=txn.balance,
            timestamp=txn.timestamp,
        )

    def to_event_detail(self) -> dict:
        """JSON-ready payload published on the event bus."""
        return self.model_dump(mode="json", by_alias=True)
