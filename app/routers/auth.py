"""
Auth router — issues the bearer tokens the ledger endpoints require.

  POST /auth/signup  — create a USER identity, answer with a token (201)
  POST /auth/login   — exchange email and password for a token

Both are open to anonymous callers; /health is the only other one. Neither
can create an ADMIN: posting transactions and reading the ledger stay
closed until an operator promotes the user (demo/promote_admin.py).
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.auth import (
    SignupResponse,
    TokenResponse,
    UserLoginRequest,
    UserSignupRequest,
)
from app.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user identity",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a user with the `user` role and return a token for it.

    A second signup with the same email is answered with 409.
    """
    user, token = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
    )
    return SignupResponse(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Exchange credentials for a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Return a fresh token; send it as `Authorization: Bearer <token>`."""
    _, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return TokenResponse(token=token)
