"""
Tenant-scope authentication routes, mounted under ``/{tenant}/auth``.

The tenant segment is resolved before any handler runs; unknown tenants get
404 ``Organization not found``.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..container import ServiceContainer, get_container
from ..core.tokens import TenantTokenPayload
from ..tenants.dependencies import TenantContext, get_tenant_db, resolve_tenant
from .dependencies import require_tenant_principal
from .schemas import LoginRequest, MessageResponse, RefreshRequest, TenantLoginResponse, TenantUserSummary

router = APIRouter(prefix="/{tenant}/auth", tags=["Organization Authentication"])


@router.post("/login", response_model=TenantLoginResponse)
def tenant_login_route(
    payload: LoginRequest,
    tenant: TenantContext = Depends(resolve_tenant),
    db: Session = Depends(get_tenant_db),
    container: ServiceContainer = Depends(get_container),
):
    session = container.auth_service.login(
        db, container.tenant_users, payload.email, payload.password, tenant_slug=tenant.slug
    )
    return TenantLoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user=session.user,
    )


@router.post("/refresh", response_model=TenantLoginResponse)
def tenant_refresh_route(
    payload: RefreshRequest,
    tenant: TenantContext = Depends(resolve_tenant),
    db: Session = Depends(get_tenant_db),
    container: ServiceContainer = Depends(get_container),
):
    session = container.auth_service.refresh(
        db, container.tenant_users, payload.refresh_token, tenant_slug=tenant.slug
    )
    return TenantLoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user=session.user,
    )


@router.post("/logout", response_model=MessageResponse)
def tenant_logout_route(
    principal: TenantTokenPayload = Depends(require_tenant_principal),
    db: Session = Depends(get_tenant_db),
    container: ServiceContainer = Depends(get_container),
):
    container.auth_service.logout(db, container.tenant_users, principal)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=TenantUserSummary)
def tenant_me_route(
    principal: TenantTokenPayload = Depends(require_tenant_principal),
    db: Session = Depends(get_tenant_db),
    container: ServiceContainer = Depends(get_container),
):
    return container.auth_service.me(db, container.tenant_users, principal)
