"""
Auth Schemas - Pydantic models for request validation and response serialization.
"""
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """
    Login Schema - Used by both central and tenant login

    Fields:
    - email: Login email
    - password: Plain text password
    """
    email: EmailStr
    password: str = Field(..., min_length=6)


class RegisterRequest(BaseModel):
    """
    Central Registration Schema

    Fields:
    - email: Unique email address
    - name: Unique display name
    - password: Plain text password (hashed before storage)
    """
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class CentralUserSummary(BaseModel):
    id: int
    email: str
    name: str
    is_verified: Optional[bool] = None


class TenantUserSummary(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str


class CentralLoginResponse(BaseModel):
    """
    Login Response Schema - Returned by login and refresh

    Fields:
    - access_token: Short-lived JWT for the Authorization header
    - refresh_token: Combined refresh token (<jwt>.<secret>)
    - token_type: Always "bearer"
    - user: Summary of the authenticated user
    """
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: CentralUserSummary


class TenantLoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: TenantUserSummary


class MessageResponse(BaseModel):
    message: str
