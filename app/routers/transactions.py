"""
Transactions router — post transactions and read the ledger.

Endpoints (role admin):
  POST /transaction               — Apply an INBOUND or OUTBOUND transaction
  GET  /transactions/{account_id} — List an account's ledger entries
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_transaction_processor, require_admin
from app.models.user import User
from app.schemas.transaction import TransactionCreateRequest, TransactionResponse
from app.services import ledger_service
from app.services.transaction_service import TransactionProcessor

router = APIRouter()


@router.post(
    "/transaction",
    response_model=TransactionResponse,
    summary="Apply a transaction to an account",
)
async def create_transaction(
    request: TransactionCreateRequest,
    admin: User = Depends(require_admin),
    processor: TransactionProcessor = Depends(get_transaction_processor),
):
    """
    Apply a transaction to one currency balance of an account.

    - **INBOUND**: Adds `amount` to the balance, creating it if needed
    - **OUTBOUND**: Subtracts `amount`; rejected with 400 if the balance
      is lower or the account holds no such currency

    The response's `balance` is the balance right after this transaction.
    An event is published after the entry is stored; a delivery failure
    does not fail the request.
    """
    outcome = await processor.apply(
        account_id=request.account,
        amount=request.amount,
        transaction_type=request.transaction_type,
        currency=request.currency,
    )
    return TransactionResponse.from_transaction(outcome.transaction)


@router.get(
    "/transactions/{account_id}",
    response_model=list[TransactionResponse],
    summary="List an account's transactions",
)
async def list_transactions(
    account_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List ledger entries for an account, oldest first."""
    transactions = await ledger_service.list_transactions(db, account_id)
    return [TransactionResponse.from_transaction(txn) for txn in transactions]
