"""
Organization Schemas - Pydantic models for tenant management endpoints.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class OrganizationCreate(BaseModel):
    """
    Organization Creation Schema

    Fields:
    - name: Display name; its slug determines the database, role and secret names
    """
    name: str = Field(..., min_length=1, max_length=100)


class DatabaseOutcome(BaseModel):
    """Result of provisioning, serialized with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)

    created: bool
    db_name: str = Field(..., serialization_alias="dbName")
    secret_name: str = Field(..., serialization_alias="secretName")
    message: str


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrganizationCreatedResponse(OrganizationResponse):
    database: DatabaseOutcome


class CountResponse(BaseModel):
    count: int


class TenantAdminCreate(BaseModel):
    """
    Tenant Admin Creation Schema - Seeds an administrator inside an organization

    Fields:
    - email: Login email, unique within the organization
    - password: Plain text password (hashed before storage)
    - first_name / last_name: Admin's name
    """
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class TenantUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
