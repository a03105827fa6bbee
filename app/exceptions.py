"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  Custom exceptions let the service layer raise domain-specific errors
  (like InsufficientFundsError) without importing HTTP concepts. The
  handler layer then translates these into proper HTTP responses.

  Every error carries two machine-readable attributes besides its message:
    - error_type: a stable snake_case code returned to API clients
    - retryable:  whether re-submitting the identical request is safe

Exception hierarchy:
    LedgerAPIError (base)
    ├── AccountNotFoundError     — requested account doesn't exist
    ├── InsufficientFundsError   — outbound amount exceeds the currency balance
    ├── InvalidAmountError       — amount is zero, negative or finer than a cent
    ├── BalanceLimitExceededError — inbound would exceed the balance ceiling
    ├── ConcurrentUpdateError    — an account update lost a race with another writer
    ├── PersistenceError         — a store rejected or could not accept a write
    ├── DuplicateEmailError      — signup with an email already in use
    ├── InvalidCredentialsError  — wrong email or password
    └── LedgerEntryImmutableError — attempt to modify or delete a ledger entry
"""

import uuid
from decimal import Decimal

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

log = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerAPIError(Exception):
    """Base exception for all Ledger API domain errors."""

    error_type = "ledger_error"
    retryable = False

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class AccountNotFoundError(LedgerAPIError):
    """Raised when a requested account does not exist."""

    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class InsufficientFundsError(LedgerAPIError):
    """
    Raised when an OUTBOUND transaction exceeds the currency balance.

    A currency the account does not hold counts as a zero balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        currency: The currency of the rejected transaction.
        requested: The amount the caller tried to take out.
        available: The balance held in that currency.
    """

    error_type = "insufficient_funds"

    def __init__(
        self,
        account_id: uuid.UUID,
        currency: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.account_id = account_id
        self.currency = currency
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested} {currency}, "
            f"available {available} {currency}"
        )


class InvalidAmountError(LedgerAPIError):
    """Raised when a transaction amount is not a positive whole number of cents."""

    error_type = "invalid_amount"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(
            f"Amount {amount} must be positive with at most two decimal places"
        )


class BalanceLimitExceededError(LedgerAPIError):
    """Raised when an INBOUND would push a balance past MAX_BALANCE_CENTS."""

    error_type = "balance_limit_exceeded"

    def __init__(self, account_id: uuid.UUID, currency: str, limit: Decimal):
        self.account_id = account_id
        self.currency = currency
        self.limit = limit
        super().__init__(f"The {currency} balance cannot exceed {limit} {currency}")


class ConcurrentUpdateError(LedgerAPIError):
    """
    Raised when an account update loses its version check to another writer.

    Nothing was written; the client should re-read the account and decide
    whether its replacement still applies.
    """

    error_type = "concurrent_update"
    retryable = True

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} was changed by another request")


class PersistenceError(LedgerAPIError):
    """
    Raised when the account or ledger store fails to accept a write.

    Nothing has been committed when this is raised, so the whole request
    may be retried. The message is deliberately generic; the underlying
    database error is logged, never returned to the client.
    """

    error_type = "persistence_failure"
    retryable = True

    def __init__(self, detail: str = "The ledger could not store this request"):
        super().__init__(detail)


class DuplicateEmailError(LedgerAPIError):
    """Raised when attempting to register with an email that's already in use."""

    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(LedgerAPIError):
    """Raised when login credentials are incorrect."""

    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


class LedgerEntryImmutableError(LedgerAPIError):
    """Raised by the ORM when code tries to change a stored ledger entry."""

    error_type = "ledger_entry_immutable"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Ledger entry {transaction_id} cannot be modified")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and a
    consistent JSON body: {"detail": "...", "error_type": "..."}

    This is called once in main.py.
    """

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": jsonable_encoder(exc.errors()),
                "error_type": "validation_error",
            },
        )

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "currency": exc.currency,
                "requested": float(exc.requested),
                "available": float(exc.available),
            },
        )

    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(
        request: Request, exc: PersistenceError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email_handler(
        request: Request, exc: DuplicateEmailError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,  # Conflict — the resource already exists
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(InvalidAmountError)
    @app.exception_handler(BalanceLimitExceededError)
    async def rejected_amount_handler(
        request: Request, exc: LedgerAPIError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(ConcurrentUpdateError)
    async def concurrent_update_handler(
        request: Request, exc: ConcurrentUpdateError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        # Database errors that escaped the services; same body as PersistenceError
        log.error("unhandled_database_error", path=request.url.path, error=str(exc))
        error = PersistenceError()
        return JSONResponse(
            status_code=500,
            content={"detail": error.detail, "error_type": error.error_type},
        )

    # Called synchronously from slowapi's middleware, so this one is not async
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """429 body for a client that has used up its request window."""
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Too many requests from this IP, limit is {exc.detail}",
            "error_type": "rate_limited",
        },
    )
