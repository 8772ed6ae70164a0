"""
FastAPI dependencies resolving the ``{tenant}`` path segment.
"""
from dataclasses import dataclass

from fastapi import Depends

from ..container import ServiceContainer, get_container
from .exceptions import TenantNotFoundException
from .naming import canonical_slug


@dataclass(frozen=True)
class TenantContext:
    """Tenant a request is addressed to."""
    segment: str
    slug: str


def resolve_tenant(tenant: str, container: ServiceContainer = Depends(get_container)) -> TenantContext:
    """
    Resolve the tenant path segment before any tenant handler runs.

    Args:
        tenant: Path segment as sent (display name or slug)
        container: Application services

    Returns:
        TenantContext: Segment and canonical slug

    Raises:
        TenantNotFoundException: If no provisioned tenant has this slug
    """
    slug = canonical_slug(tenant)
    if not container.tenant_cache.resolve(slug):
        raise TenantNotFoundException()
    return TenantContext(segment=tenant, slug=slug)


def get_tenant_db(
    tenant: TenantContext = Depends(resolve_tenant),
    container: ServiceContainer = Depends(get_container),
):
    """
    Tenant database dependency - Yields a session on the resolved tenant's database.

    Yields:
        SQLAlchemy Session: Closed after the request
    """
    with container.tenant_databases.session(tenant.slug) as db:
        yield db
