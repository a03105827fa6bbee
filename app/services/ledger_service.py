"""
Ledger service — the append-only transaction store.

Only two operations exist: append a new entry and list the entries of one
account. There is deliberately no update or delete; the ORM listeners on
Transaction reject both.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.transaction import Transaction, TransactionType


async def append_transaction(
    db: AsyncSession,
    account_id: uuid.UUID,
    transaction_type: TransactionType,
    currency: str,
    amount_cents: int,
    balance_cents: int,
) -> Transaction:
    """
    Add a ledger entry and flush it, assigning id, sequence and timestamp.

    The caller owns the commit, so the entry can share a database
    transaction with the balance change it describes.
    """
    txn = Transaction(
        account_id=account_id,
        transaction_type=transaction_type,
        currency=currency,
        amount_cents=amount_cents,
        balance_cents=balance_cents,
    )
    db.add(txn)
    await db.flush()
    return txn


async def list_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
) -> list[Transaction]:
    """
    All ledger entries for an account in insertion order.

    An unknown account id yields an empty list, not an error — the ledger
    only holds a weak reference to accounts.
    """
    result = await db.execute(
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.sequence)
    )
    return list(result.scalars().all())
