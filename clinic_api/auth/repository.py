"""
Data access for credential records of both scopes.

Rows are converted to ``Account`` values at this boundary; the tenant role is
derived here, once, from which profile link is set.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.tokens import (
    CENTRAL_SCOPE,
    TENANT_SCOPE,
    CentralTokenPayload,
    TenantTokenPayload,
    TokenPayload,
)
from .exceptions import (
    EmailAlreadyExistsException,
    NameAlreadyExistsException,
    UserNotVerifiedException,
)
from .models import OrganizationUser, TenantRole, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    id: int
    email: str
    name: str
    password_hash: str
    refresh_hash: Optional[str]
    is_verified: bool = True
    role: Optional[TenantRole] = None
    summary: Dict[str, Any] = field(default_factory=dict)


def role_of(user: OrganizationUser) -> TenantRole:
    if user.admin_profile_id is not None:
        return TenantRole.ADMIN
    if user.doctor_profile_id is not None:
        return TenantRole.DOCTOR
    if user.patient_profile_id is not None:
        return TenantRole.PATIENT
    return TenantRole.UNASSIGNED


class _UserStore:
    """Refresh-hash bookkeeping shared by both scopes."""
    model = None
    scope = None

    def _to_account(self, row) -> Account:
        raise NotImplementedError

    def get_by_email(self, db: Session, email: str) -> Optional[Account]:
        row = db.query(self.model).filter(self.model.email == email).first()
        return self._to_account(row) if row else None

    def get_by_id(self, db: Session, user_id: int) -> Optional[Account]:
        row = db.query(self.model).filter(self.model.id == user_id).first()
        return self._to_account(row) if row else None

    def set_refresh_hash(self, db: Session, user_id: int, refresh_hash: Optional[str]) -> None:
        db.query(self.model).filter(self.model.id == user_id).update(
            {self.model.refresh_token: refresh_hash}, synchronize_session=False
        )
        db.commit()

    def swap_refresh_hash(self, db: Session, user_id: int, expected: str, refresh_hash: str) -> bool:
        """
        Replace the stored hash only if it still equals ``expected``.

        The comparison and the write are one UPDATE statement, so of several
        callers presenting the same refresh token exactly one succeeds.

        Returns:
            bool: True if this call performed the rotation
        """
        updated = (
            db.query(self.model)
            .filter(self.model.id == user_id, self.model.refresh_token == expected)
            .update({self.model.refresh_token: refresh_hash}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    def clear_refresh_hash(self, db: Session, user_id: int) -> None:
        self.set_refresh_hash(db, user_id, None)

    def check_login_allowed(self, account: Account) -> None:
        """Raise if the account may not start a session. Tenant users with no role still may."""


class CentralUserStore(_UserStore):
    model = User
    scope = CENTRAL_SCOPE

    def _to_account(self, row: User) -> Account:
        return Account(
            id=row.id,
            email=row.email,
            name=row.name,
            password_hash=row.password_hash,
            refresh_hash=row.refresh_token,
            is_verified=bool(row.is_verified),
            summary={"id": row.id, "email": row.email, "name": row.name},
        )

    def build_payload(self, account: Account, tenant_slug: Optional[str] = None) -> TokenPayload:
        return CentralTokenPayload(user_id=account.id, email=account.email, name=account.name)

    def check_login_allowed(self, account: Account) -> None:
        if not account.is_verified:
            raise UserNotVerifiedException()

    def create_user(self, db: Session, email: str, name: str, password_hash: str, is_verified: bool = False) -> Account:
        """
        Insert a central user.

        Raises:
            EmailAlreadyExistsException: If the email is registered
            NameAlreadyExistsException: If the name is taken
        """
        if db.query(User.id).filter(User.email == email).first():
            raise EmailAlreadyExistsException()
        if db.query(User.id).filter(User.name == name).first():
            raise NameAlreadyExistsException()

        user = User(email=email, name=name, password_hash=password_hash, is_verified=is_verified)
        db.add(user)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            # Lost a race with a concurrent registration
            if db.query(User.id).filter(User.email == email).first():
                raise EmailAlreadyExistsException() from exc
            raise NameAlreadyExistsException() from exc
        db.refresh(user)
        return self._to_account(user)

    def mark_verified(self, db: Session, user_id: int) -> None:
        db.query(User).filter(User.id == user_id).update({User.is_verified: True}, synchronize_session=False)
        db.commit()


class TenantUserStore(_UserStore):
    model = OrganizationUser
    scope = TENANT_SCOPE

    def _to_account(self, row: OrganizationUser) -> Account:
        role = role_of(row)
        return Account(
            id=row.id,
            email=row.email,
            name=row.full_name,
            password_hash=row.password_hash,
            refresh_hash=row.refresh_token,
            role=role,
            summary={
                "id": row.id,
                "email": row.email,
                "first_name": row.first_name,
                "last_name": row.last_name,
                "role": role.value,
            },
        )

    def build_payload(self, account: Account, tenant_slug: Optional[str] = None) -> TokenPayload:
        return TenantTokenPayload(
            user_id=account.id, email=account.email, name=account.name, tenant_slug=tenant_slug
        )
