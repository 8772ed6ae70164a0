"""
Credential models for both authentication scopes.

``User`` lives in the central registry database. ``OrganizationUser`` and the
three profile tables are created inside every tenant database; a tenant
user's role is given by which profile (if any) is linked.
"""
import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import CentralBase, TenantBase


class TenantRole(str, enum.Enum):
    """
    Role of a tenant user.

    Roles:
    - ADMIN: Organization administrator
    - DOCTOR: Medical practitioner
    - PATIENT: Patient of the organization
    - UNASSIGNED: Registered, no profile linked yet
    """
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"
    UNASSIGNED = "unassigned"


class User(CentralBase):
    """
    User Model - Platform-level (central scope) account

    Fields:
    - id: Primary key
    - email: Unique login email
    - name: Unique display name
    - password_hash: Peppered bcrypt hash
    - refresh_token: bcrypt hash of the opaque half of the live refresh token
    - is_verified: Must be set before the user can log in
    - created_at / updated_at: Row timestamps
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class AdminProfile(TenantBase):
    __tablename__ = "admin_profiles"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DoctorProfile(TenantBase):
    __tablename__ = "doctor_profiles"

    id = Column(Integer, primary_key=True, index=True)
    specialization = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PatientProfile(TenantBase):
    __tablename__ = "patient_profiles"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class OrganizationUser(TenantBase):
    """
    OrganizationUser Model - Account inside one tenant database

    At most one of the three profile links may be set.
    """
    __tablename__ = "organization_users"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN admin_profile_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN doctor_profile_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN patient_profile_id IS NULL THEN 0 ELSE 1 END) <= 1",
            name="ck_organization_users_single_profile",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    admin_profile_id = Column(Integer, ForeignKey("admin_profiles.id"), nullable=True)
    doctor_profile_id = Column(Integer, ForeignKey("doctor_profiles.id"), nullable=True)
    patient_profile_id = Column(Integer, ForeignKey("patient_profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    admin_profile = relationship("AdminProfile")
    doctor_profile = relationship("DoctorProfile")
    patient_profile = relationship("PatientProfile")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
