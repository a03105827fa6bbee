"""
Transaction service — applies INBOUND/OUTBOUND transactions to accounts.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Balance mutation per currency (no negative balances, ever)
  - Recording the ledger entry with the resulting balance
  - Emitting the transaction-created event

Order of operations for one request:
  1. Take the per-account lock
  2. Load the account (404 if missing)
  3. INBOUND adds to the currency balance, creating the entry if needed.
     OUTBOUND subtracts, or fails with InsufficientFundsError when the
     currency is absent or its balance is lower than the amount. INBOUND
     fails with BalanceLimitExceededError past MAX_BALANCE_CENTS. A
     rejected request changes nothing and records nothing.
  4. Write the new balance and append the ledger entry
  5. Commit both in ONE database transaction, then release the lock
  6. Publish the event describing the committed entry

Atomicity:
  The balance change and its ledger entry are committed together, so the
  account can never show a balance change the ledger doesn't explain, and
  a failed request can always be retried safely: until step 5 succeeds
  nothing is stored.

Event delivery:
  The event is published only after the commit, so it always describes a
  durable record. A failed publish is logged and reported in the outcome
  (`published=False`) but the request still succeeds.

Concurrency:
  Inside one process the AccountLocks registry serializes requests for the
  same account. Across processes the accounts row's version column does:
  a lost race raises StaleDataError at flush, the unit of work is rolled
  back and steps 2-5 are re-run against fresh data, up to
  BALANCE_UPDATE_MAX_RETRIES times.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.exceptions import (
    BalanceLimitExceededError,
    InsufficientFundsError,
    InvalidAmountError,
    LedgerAPIError,
    PersistenceError,
)
from app.models.transaction import Transaction, TransactionType
from app.money import MAX_BALANCE_CENTS, from_cents, to_cents
from app.services import account_service, ledger_service
from app.services.account_locks import AccountLocks
from app.services.event_publisher import EventPublisher, PublishResult

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransactionOutcome:
    """Result of applying one transaction request."""
    transaction: Transaction
    published: bool


class TransactionProcessor:
    """
    Applies transaction requests against the account and ledger stores.

    One instance is created at startup and shared by every request; it holds
    the session factory, the event publisher and the per-account locks.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: EventPublisher,
        locks: AccountLocks | None = None,
        max_retries: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._publisher = publisher
        self._locks = locks if locks is not None else AccountLocks()
        self._max_retries = max_retries

    async def apply(
        self,
        account_id: uuid.UUID,
        amount: Decimal,
        transaction_type: TransactionType,
        currency: str,
    ) -> TransactionOutcome:
        """
        Apply a transaction and return the stored ledger entry.

        Args:
            account_id: The account to credit or debit.
            amount: Positive amount with at most two decimal places.
            transaction_type: INBOUND or OUTBOUND.
            currency: 3-letter currency code.

        Returns:
            TransactionOutcome with the committed Transaction and whether
            the event was delivered.

        Raises:
            AccountNotFoundError: If the account doesn't exist.
            InsufficientFundsError: If an OUTBOUND exceeds the balance.
            PersistenceError: If the stores could not commit the change.
            InvalidAmountError: If the amount is not positive or is finer
                than one cent.
            BalanceLimitExceededError: If an INBOUND would take the balance
                past MAX_BALANCE_CENTS.
        """
        try:
            amount_cents = to_cents(amount)
        except ValueError as exc:
            raise InvalidAmountError(amount) from exc
        if amount_cents <= 0:
            raise InvalidAmountError(amount)

        async with self._locks.hold(account_id):
            txn = await self._commit_with_retry(
                account_id, amount_cents, transaction_type, currency
            )

        result = await self._publish(txn)
        return TransactionOutcome(transaction=txn, published=result.ok)

    async def _commit_with_retry(
        self,
        account_id: uuid.UUID,
        amount_cents: int,
        transaction_type: TransactionType,
        currency: str,
    ) -> Transaction:
        for attempt in range(1, self._max_retries + 2):
            try:
                return await self._commit_once(
                    account_id, amount_cents, transaction_type, currency
                )
            except StaleDataError:
                log.warning(
                    "balance_update_conflict",
                    account_id=str(account_id),
                    attempt=attempt,
                )

        log.error(
            "balance_update_retries_exhausted",
            account_id=str(account_id),
            attempts=self._max_retries + 1,
        )
        raise PersistenceError("The account is being updated concurrently, try again")

    async def _commit_once(
        self,
        account_id: uuid.UUID,
        amount_cents: int,
        transaction_type: TransactionType,
        currency: str,
    ) -> Transaction:
        async with self._session_factory() as db:
            try:
                account = await account_service.get_account(
                    db, account_id, for_update=True
                )
                available_cents = account.balance_cents(currency)

                if transaction_type == TransactionType.OUTBOUND:
                    if available_cents < amount_cents:
                        raise InsufficientFundsError(
                            account_id=account_id,
                            currency=currency,
                            requested=from_cents(amount_cents),
                            available=from_cents(available_cents),
                        )
                    new_balance_cents = available_cents - amount_cents
                else:
                    new_balance_cents = available_cents + amount_cents
                    if new_balance_cents > MAX_BALANCE_CENTS:
                        raise BalanceLimitExceededError(
                            account_id=account_id,
                            currency=currency,
                            limit=from_cents(MAX_BALANCE_CENTS),
                        )

                balances = {
                    code: entry.amount_cents for code, entry in account.balances.items()
                }
                balances[currency] = new_balance_cents
                account_service.replace_balances(account, balances)
                # The version check runs here; a lost race raises StaleDataError
                await db.flush()

                txn = await ledger_service.append_transaction(
                    db,
                    account_id=account_id,
                    transaction_type=transaction_type,
                    currency=currency,
                    amount_cents=amount_cents,
                    balance_cents=new_balance_cents,
                )
                await db.commit()
            except InsufficientFundsError as exc:
                await db.rollback()
                log.info(
                    "transaction_rejected",
                    account_id=str(account_id),
                    currency=currency,
                    reason=exc.error_type,
                    requested_cents=amount_cents,
                    available_cents=available_cents,
                )
                raise
            except (LedgerAPIError, StaleDataError):
                await db.rollback()
                raise
            except SQLAlchemyError as exc:
                await db.rollback()
                log.error(
                    "persistence_failure",
                    account_id=str(account_id),
                    error=str(exc),
                )
                raise PersistenceError() from exc

        log.info(
            "transaction_applied",
            transaction_id=str(txn.id),
            account_id=str(account_id),
            transaction_type=transaction_type.value,
            currency=currency,
            amount_cents=amount_cents,
            balance_cents=new_balance_cents,
        )
        return txn

    async def _publish(self, txn: Transaction) -> PublishResult:
        try:
            result = await self._publisher.publish(txn)
        except Exception as exc:
            result = PublishResult(ok=False, error=repr(exc))

        if not result.ok:
            log.warning(
                "transaction_publish_failed",
                transaction_id=str(txn.id),
                account_id=str(txn.account_id),
                error=result.error,
            )
        return result
