"""
Account model — a holder of one or more currency balances.

Each account has:
  - An owner name (free text; several accounts may share an owner)
  - A set of balances, at most one per 3-letter currency code
  - A version counter used for optimistic concurrency control

Balance storage:
  Balances live in their own table, one row per (account, currency), with a
  UNIQUE constraint on that pair. On the Account they are mapped as a dict
  keyed by currency code, so "one entry per currency" is enforced by the
  data structure itself rather than by scanning a list.

  Amounts are integer cents. A CHECK constraint at the database level
  enforces that no balance can ever go negative — the transaction
  processor checks before debiting, the constraint is the final safety net.

Versioning:
  `version` is SQLAlchemy's version_id_col. Every UPDATE of the accounts
  row includes "WHERE version = <loaded version>" and bumps it; if another
  writer got there first the UPDATE matches zero rows and SQLAlchemy raises
  StaleDataError. Balance writers must therefore touch the account row
  (updated_at) whenever they change a balance.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, attribute_keyed_dict, mapped_column, relationship

from app.database import Base
from app.money import from_cents


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    owner: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    # Keyed by currency code; loaded eagerly because async sessions
    # cannot lazy-load on attribute access.
    balances: Mapped[dict[str, "AccountBalance"]] = relationship(
        back_populates="account",
        collection_class=attribute_keyed_dict("currency"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def balance_cents(self, currency: str) -> int:
        """Balance held in `currency`, treating an absent currency as zero."""
        entry = self.balances.get(currency)
        return entry.amount_cents if entry is not None else 0

    def touch(self) -> None:
        """Mark the account row dirty so the next flush checks its version."""
        self.updated_at = datetime.now(timezone.utc)


class AccountBalance(Base):
    __tablename__ = "account_balances"

    __table_args__ = (
        UniqueConstraint("account_id", "currency", name="uq_account_balances_currency"),
        CheckConstraint(
            "amount_cents >= 0",
            name="ck_account_balances_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    # ISO 4217 currency code
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    account: Mapped["Account"] = relationship(
        back_populates="balances",
    )

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)
