"""
Transaction model — the append-only ledger of balance changes.

Every accepted INBOUND or OUTBOUND request produces exactly one Transaction
record. Rejected requests (insufficient funds, unknown account) produce
none.

Key fields:
  - account_id: The account the transaction was applied to. A weak
    reference: there is no foreign key, nothing cascades, and the ledger
    keeps its history even if the account row is ever removed.
  - transaction_type: INBOUND (money in) or OUTBOUND (money out)
  - amount_cents: Always positive (the direction is given by the type)
  - balance_cents: Snapshot of the account's balance in `currency`
    immediately after this transaction was applied
  - sequence: Monotonic insertion counter; ledger listings sort by it

Immutability:
  Ledger entries are never updated or deleted. A before_update /
  before_delete ORM listener raises LedgerEntryImmutableError if any code
  path tries to.
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, Integer, String, event
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.exceptions import LedgerEntryImmutableError
from app.money import from_cents


class TransactionType(str, enum.Enum):
    """Direction of a transaction relative to the account."""
    INBOUND = "INBOUND"     # Increases the currency balance
    OUTBOUND = "OUTBOUND"   # Decreases the currency balance


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        # Amount must always be positive — direction is indicated by type
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
        CheckConstraint("balance_cents >= 0", name="ck_transactions_non_negative_balance"),
    )

    # Insertion order. SQLite only auto-increments an INTEGER PRIMARY KEY,
    # so the sequence is the primary key and the public id is a unique UUID.
    sequence: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    id: Mapped[uuid.UUID] = mapped_column(
        unique=True,
        default=uuid.uuid4,
        nullable=False,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Resulting balance for `currency` after this transaction
    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    # Set once at creation, never changed
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def balance(self) -> Decimal:
        return from_cents(self.balance_cents)


@event.listens_for(Transaction, "before_update")
def prevent_transaction_update(mapper, connection, target):
    """Ledger entries are append-only."""
    raise LedgerEntryImmutableError(target.id)


@event.listens_for(Transaction, "before_delete")
def prevent_transaction_delete(mapper, connection, target):
    raise LedgerEntryImmutableError(target.id)
