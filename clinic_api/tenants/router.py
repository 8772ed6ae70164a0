"""
Organization management routes. All of them require a central-scope token.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth.dependencies import require_central_principal
from ..auth.models import TenantRole
from ..container import ServiceContainer, get_container
from ..core.tokens import CentralTokenPayload
from ..database import get_db
from .schemas import (
    CountResponse,
    DatabaseOutcome,
    OrganizationCreate,
    OrganizationCreatedResponse,
    OrganizationResponse,
    TenantAdminCreate,
    TenantUserResponse,
)

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post("", response_model=OrganizationCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_organization_route(
    payload: OrganizationCreate,
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Create an organization with its own database, role and credentials secret.

    Either everything is created or nothing is: on failure the response is an
    error and no trace of the organization remains.
    """
    logger.info(f"Organization creation requested by user {principal.user_id}: {payload.name!r}")
    result = container.provisioning_service.create_tenant(db, payload.name, created_by=principal.user_id)
    response = OrganizationResponse.model_validate(result.tenant)
    return OrganizationCreatedResponse(
        **response.model_dump(),
        database=DatabaseOutcome(
            created=result.outcome.created,
            db_name=result.outcome.db_name,
            secret_name=result.outcome.secret_name,
            message=result.outcome.message,
        ),
    )


@router.get("", response_model=List[OrganizationResponse])
def list_organizations_route(
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    return container.provisioning_service.list_tenants(db)


@router.get("/count", response_model=CountResponse)
def count_organizations_route(
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    return {"count": container.provisioning_service.count_tenants(db)}


@router.post("/{organization_id}/admins", response_model=TenantUserResponse, status_code=status.HTTP_201_CREATED)
def create_organization_admin_route(
    organization_id: int,
    payload: TenantAdminCreate,
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """Seed an administrator account inside an organization's database."""
    user = container.tenant_admin_service.create_admin(
        db,
        organization_id,
        payload.email,
        payload.password,
        payload.first_name,
        payload.last_name,
        created_by=principal.user_id,
    )
    return TenantUserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=TenantRole.ADMIN.value,
    )
