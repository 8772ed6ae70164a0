"""
Tenant registry - durable record of which organizations exist.

A row is inserted as a reservation before any external resource is created
and stamped with ``provisioned_at`` once provisioning commits. Readers only
ever see provisioned rows.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .exceptions import DuplicateTenantNameException
from .models import Tenant

# Set up logging
logger = logging.getLogger(__name__)


class TenantRegistry:

    def get_by_id(self, db: Session, tenant_id: int) -> Optional[Tenant]:
        return (
            db.query(Tenant)
            .filter(Tenant.id == tenant_id, Tenant.provisioned_at.isnot(None))
            .first()
        )

    def get_by_slug(self, db: Session, slug: str) -> Optional[Tenant]:
        return (
            db.query(Tenant)
            .filter(Tenant.slug == slug, Tenant.provisioned_at.isnot(None))
            .first()
        )

    def exists(self, db: Session, slug: str) -> bool:
        return self.get_by_slug(db, slug) is not None

    def name_taken(self, db: Session, name: str, slug: str) -> bool:
        """True if a row (provisioned or reserved) already holds the name or slug."""
        return (
            db.query(Tenant.id)
            .filter(or_(Tenant.name == name, Tenant.slug == slug))
            .first()
            is not None
        )

    def list(self, db: Session) -> List[Tenant]:
        return (
            db.query(Tenant)
            .filter(Tenant.provisioned_at.isnot(None))
            .order_by(Tenant.id)
            .all()
        )

    def count(self, db: Session) -> int:
        return db.query(Tenant).filter(Tenant.provisioned_at.isnot(None)).count()

    def reserve(self, db: Session, name: str, slug: str) -> Tenant:
        """
        Insert an unprovisioned row holding the name and slug.

        Args:
            db: Central database session
            name: Display name
            slug: Canonical slug of the name

        Returns:
            Tenant: The committed reservation

        Raises:
            DuplicateTenantNameException: If the name or slug is already held
        """
        tenant = Tenant(name=name, slug=slug)
        db.add(tenant)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.info(f"Reservation for {name!r} lost to an existing row")
            raise DuplicateTenantNameException() from exc
        db.refresh(tenant)
        logger.info(f"Reserved tenant {tenant.id} ({slug})")
        return tenant

    def mark_provisioned(self, db: Session, tenant: Tenant) -> Tenant:
        tenant.provisioned_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(tenant)
        return tenant

    def release(self, db: Session, tenant_id: int) -> None:
        """Delete a reservation. Used as a rollback compensator; missing rows are ignored."""
        db.rollback()
        deleted = db.query(Tenant).filter(Tenant.id == tenant_id).delete()
        db.commit()
        if deleted:
            logger.info(f"Released tenant reservation {tenant_id}")
