"""
FastAPI dependencies for bearer-token authentication.

Every verification failure reaches the client as the same 401; the internal
reason is only logged.
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from ..container import ServiceContainer, get_container
from ..core.audit import log_security_event
from ..core.tokens import (
    CENTRAL_SCOPE,
    TENANT_SCOPE,
    CentralTokenPayload,
    TenantTokenPayload,
    TokenError,
    require_scope,
)
from ..tenants.dependencies import TenantContext, resolve_tenant
from .exceptions import InvalidTokenException, MissingTokenException

logger = logging.getLogger(__name__)

# Bearer token from the Authorization header; missing tokens are reported by us
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _authenticate(container: ServiceContainer, token: Optional[str], scope: str, tenant_slug: Optional[str] = None):
    if not token:
        raise MissingTokenException()
    try:
        payload = container.tokens.verify_access_token(token)
        return require_scope(payload, scope, tenant_slug)
    except TokenError as exc:
        logger.debug(f"Access token rejected: {exc}")
        log_security_event("ACCESS_REJECTED", scope=scope, tenant=tenant_slug, reason=exc.kind)
        raise InvalidTokenException() from exc


def require_central_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    container: ServiceContainer = Depends(get_container),
) -> CentralTokenPayload:
    """
    Get the central user behind the bearer token.

    Raises:
        MissingTokenException: No bearer token sent
        InvalidTokenException: Token invalid, expired or tenant-scoped
    """
    return _authenticate(container, token, CENTRAL_SCOPE)


def require_tenant_principal(
    tenant: TenantContext = Depends(resolve_tenant),
    token: Optional[str] = Depends(oauth2_scheme),
    container: ServiceContainer = Depends(get_container),
) -> TenantTokenPayload:
    """
    Get the tenant user behind the bearer token.

    The token must have been issued by this same tenant.
    """
    return _authenticate(container, token, TENANT_SCOPE, tenant.slug)
