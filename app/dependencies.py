"""
FastAPI dependencies for authentication, authorization and shared handles.

Dependencies are reusable functions that FastAPI injects into route handlers.
The auth chain is:

  get_current_user (JWT -> User)
      └── require_roles(...) (User -> User, 403 if the role is not allowed)

Role-based access control:
  - USER:  Account endpoints (create, read, update)
  - ADMIN: Account endpoints plus posting transactions and reading the ledger

Shared handles:
  The transaction processor and the per-account locks are built once in
  the application lifespan and kept on app.state. get_transaction_processor()
  and get_account_locks() hand them to routes so nothing reaches for a
  module-level global.
"""

import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User, UserRole
from app.security import decode_access_token
from app.services.account_locks import AccountLocks
from app.services.transaction_service import TransactionProcessor


# OAuth2PasswordBearer reads the "Authorization: Bearer <token>" header and
# answers 401 on its own when the header is missing.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid or the user doesn't exist.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise credentials_exception
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


def require_roles(*roles: UserRole):
    """
    Build a dependency that admits only users holding one of `roles`.

    The role is read from the stored user, not the token, so a demotion
    takes effect without waiting for old tokens to expire.

    Usage:
        @router.post("/transaction")
        async def create(user: User = Depends(require_roles(UserRole.ADMIN))):
            ...
    """

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this operation",
            )
        return user

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_user_or_admin = require_roles(UserRole.USER, UserRole.ADMIN)


def get_transaction_processor(request: Request) -> TransactionProcessor:
    """The process-wide TransactionProcessor created at startup."""
    return request.app.state.transaction_processor


def get_account_locks(request: Request) -> AccountLocks:
    """The per-account locks, shared with the transaction processor."""
    return request.app.state.account_locks
