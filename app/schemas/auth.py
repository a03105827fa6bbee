"""
Pydantic schemas for authentication endpoints (signup and login).

Pydantic validates incoming data automatically — if a required field is
missing or the wrong type, the request is rejected before our code runs.
"""

import uuid

from pydantic import BaseModel, EmailStr, Field


class UserSignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr                                # Validates email format
    password: str = Field(min_length=8)            # Minimum 8 characters


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Response body for successful login — contains the JWT."""
    token: str
    token_type: str = "bearer"


class SignupResponse(BaseModel):
    """Response body for successful signup — user info + JWT."""
    user_id: uuid.UUID
    email: str
    role: str
    token: str
    token_type: str = "bearer"
