"""
Tenant Model - The central registry of organizations.

Each row maps one organization to its isolated database. The database,
role and secret names are derived from ``slug`` (see ``naming``).
"""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..database import CentralBase


class Tenant(CentralBase):
    """
    Tenant Model - One organization with its own database

    Fields:
    - id: Primary key
    - name: Display name, unique
    - slug: Canonical slug derived from name, unique
    - created_at / updated_at: Row timestamps
    - provisioned_at: Set once database, secret and schema all exist;
      rows without it are reservations still being provisioned
    """
    __tablename__ = "tenant"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    provisioned_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}', slug='{self.slug}')>"

    @property
    def is_provisioned(self) -> bool:
        return self.provisioned_at is not None
