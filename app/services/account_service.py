"""
Account service — the account store.

This module handles:
  - Account creation with optional initial balances
  - Account retrieval (single or list)
  - Full-replace updates of owner and balances

It contains no transaction logic. The transaction processor uses
get_account() and replace_balances() inside its own unit of work; it
never goes through update_account().

All functions take the session as their first argument and only flush;
committing is the caller's decision (get_db() for HTTP requests, the
processor for balance changes).
"""

import uuid
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.exceptions import AccountNotFoundError, ConcurrentUpdateError, PersistenceError
from app.models.account import Account, AccountBalance
from app.money import to_cents

log = structlog.get_logger(__name__)


def replace_balances(account: Account, balances: dict[str, int]) -> None:
    """
    Make `account.balances` equal to `balances` (currency -> cents).

    Existing rows are updated in place and only currencies that disappear
    are deleted. Deleting and re-inserting the same currency in one flush
    would trip the (account_id, currency) unique constraint, because
    SQLAlchemy emits INSERTs before DELETEs for a table.
    """
    for currency in list(account.balances):
        if currency not in balances:
            del account.balances[currency]

    for currency, amount_cents in balances.items():
        entry = account.balances.get(currency)
        if entry is None:
            account.balances[currency] = AccountBalance(
                currency=currency,
                amount_cents=amount_cents,
            )
        else:
            entry.amount_cents = amount_cents

    account.touch()


def _to_cents_mapping(balances: dict[str, Decimal]) -> dict[str, int]:
    return {currency: to_cents(amount) for currency, amount in balances.items()}


async def create_account(
    db: AsyncSession,
    owner: str,
    balances: dict[str, Decimal] | None = None,
) -> Account:
    """
    Create a new account.

    Args:
        db: Database session.
        owner: Owner name (not unique).
        balances: Optional initial balances, currency -> amount.

    Returns:
        The newly created Account instance.
    """
    account = Account(
        owner=owner,
        balances={
            currency: AccountBalance(currency=currency, amount_cents=cents)
            for currency, cents in _to_cents_mapping(balances or {}).items()
        },
    )
    db.add(account)
    await db.flush()
    return account


async def list_accounts(db: AsyncSession) -> list[Account]:
    """List every account, oldest first."""
    result = await db.execute(select(Account).order_by(Account.created_at))
    return list(result.scalars().all())


async def get_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    for_update: bool = False,
) -> Account:
    """
    Get a single account.

    Args:
        db: Database session.
        account_id: The account to retrieve.
        for_update: Lock the row (SELECT ... FOR UPDATE). No-op on SQLite,
                    a row lock on PostgreSQL.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    stmt = select(Account).where(Account.id == account_id)
    if for_update:
        stmt = stmt.with_for_update()
    # populate_existing: a re-read after a lost version check must see the
    # committed row, not the identity map's stale copy
    stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def update_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    owner: str,
    balances: dict[str, Decimal],
) -> Account:
    """
    Replace an account's owner and balances wholesale.

    This is not a merge: currencies missing from `balances` are removed.
    Callers hold the account's AccountLocks entry so that no transaction
    runs in between; a writer in another process is detected by the
    version check and reported, not retried, since replaying a full
    replace would silently discard that writer's change.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        ConcurrentUpdateError: If the account changed after it was read.
        PersistenceError: If the database rejected the write.
    """
    account = await get_account(db, account_id, for_update=True)
    account.owner = owner
    replace_balances(account, _to_cents_mapping(balances))
    try:
        await db.flush()
    except StaleDataError as exc:
        await db.rollback()
        log.info("account_update_conflict", account_id=str(account_id))
        raise ConcurrentUpdateError(account_id) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error("persistence_failure", account_id=str(account_id), error=str(exc))
        raise PersistenceError() from exc
    return account
