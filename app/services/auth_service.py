"""
Authentication service — signup and login business logic.

This module contains the core auth logic, separated from HTTP concerns.
The router calls these functions and translates the results into HTTP
responses.

Signup flow:
  1. Check if email is already registered
  2. Hash the password with Argon2id
  3. Create the User with the USER role
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT token carrying the user's current role

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration attacks
  - JWT tokens are stateless — no server-side session storage needed
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateEmailError, InvalidCredentialsError
from app.models.user import User, UserRole
from app.security import hash_password, verify_password, create_access_token

log = structlog.get_logger(__name__)


def _issue_token(user: User) -> str:
    # "sub" (subject) is the standard claim for user identity
    return create_access_token(data={"sub": str(user.id), "role": user.role.value})


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Register a new user with the USER role.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
        role=UserRole.USER,
    )
    db.add(user)
    # Flush to get user.id assigned before it goes into the token
    await db.flush()

    log.info("user_signed_up", user_id=str(user.id))
    return user, _issue_token(user)


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, the password is
            wrong, or the user is deactivated.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    # Same error for every case — prevents user enumeration
    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    return user, _issue_token(user)
