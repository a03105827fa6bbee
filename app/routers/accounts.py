"""
Accounts router — create, list, read and update accounts.

Endpoints (role user or admin):
  GET  /accounts        — List all accounts
  POST /accounts        — Create an account, optionally with balances
  GET  /accounts/{id}   — Get one account
  PUT  /accounts/{id}   — Replace owner and balances

Balances can only be changed here by a full replace. Day-to-day balance
changes go through POST /transaction so that they are recorded in the
ledger.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_account_locks, require_user_or_admin
from app.models.user import User
from app.schemas.account import (
    AccountCreateRequest,
    AccountResponse,
    AccountUpdateRequest,
)
from app.services import account_service
from app.services.account_locks import AccountLocks

router = APIRouter()


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List accounts",
)
async def list_accounts(
    user: User = Depends(require_user_or_admin),
    db: AsyncSession = Depends(get_db),
):
    """List every account with its balances."""
    accounts = await account_service.list_accounts(db)
    return [AccountResponse.from_account(account) for account in accounts]


@router.post(
    "",
    response_model=AccountResponse,
    summary="Create an account",
)
async def create_account(
    request: AccountCreateRequest,
    user: User = Depends(require_user_or_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an account for `owner`.

    - **owner**: Non-empty name; several accounts may share one
    - **balance**: Optional initial balances, at most one entry per currency
    """
    account = await account_service.create_account(
        db=db,
        owner=request.owner,
        balances={entry.currency: entry.amount for entry in request.balance},
    )
    return AccountResponse.from_account(account)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get account details",
)
async def get_account(
    account_id: uuid.UUID,
    user: User = Depends(require_user_or_admin),
    db: AsyncSession = Depends(get_db),
):
    """Get details for a specific account."""
    account = await account_service.get_account(db, account_id)
    return AccountResponse.from_account(account)


@router.put(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Replace an account's owner and balances",
)
async def update_account(
    account_id: uuid.UUID,
    request: AccountUpdateRequest,
    user: User = Depends(require_user_or_admin),
    db: AsyncSession = Depends(get_db),
    locks: AccountLocks = Depends(get_account_locks),
):
    """
    Replace the owner and the whole balance set.

    Currencies left out of `balance` are removed from the account. Returns
    409 if the account was changed by another server process meanwhile.
    """
    # Same lock as POST /transaction; commit before letting a transaction in
    async with locks.hold(account_id):
        account = await account_service.update_account(
            db=db,
            account_id=account_id,
            owner=request.owner,
            balances={entry.currency: entry.amount for entry in request.balance},
        )
        await db.commit()
    return AccountResponse.from_account(account)
