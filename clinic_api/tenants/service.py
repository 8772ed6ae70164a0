"""
Tenant service layer: provisioning and tenant administration.

Creating an organization spans three independent systems (the central
registry, the database server and the secret store) with no shared
transaction. It runs as a saga: each forward step that succeeds pushes an
undo action, and any failure runs the pushed actions in reverse order.

    NAME_RESERVED -> DATABASE_CREATED -> SECRET_CREATED
        -> SCHEMA_INITIALIZED -> COMMITTED
    (any non-terminal state) -> ROLLED_BACK
"""
import enum
import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.exceptions import EmailAlreadyExistsException
from ..auth.models import AdminProfile, OrganizationUser
from ..core.audit import log_security_event
from ..core.security import CredentialStore
from ..core.timeouts import Deadline
from ..exceptions import ProvisioningError
from .cache import TenantResolutionCache
from .connections import TenantDatabases
from .exceptions import (
    DatabaseProvisioningFailed,
    DuplicateTenantNameException,
    InvalidTenantNameException,
    ProvisioningTimeoutError,
    SchemaInitializationFailed,
    SecretProvisioningFailed,
    TenantNotFoundException,
)
from .models import Tenant
from .naming import MAX_NAME_LENGTH, MIN_NAME_LENGTH, RESERVED_SLUGS, TenantNames
from .provisioner import DatabaseProvisioner, ProvisionerError
from .registry import TenantRegistry
from .secrets import SecretAlreadyExistsError, SecretStore, SecretStoreError

# Set up logging
logger = logging.getLogger(__name__)

_HAS_ALNUM = re.compile(r"[A-Za-z0-9]")


class ProvisioningState(str, enum.Enum):
    PENDING = "pending"
    NAME_RESERVED = "name_reserved"
    DATABASE_CREATED = "database_created"
    SECRET_CREATED = "secret_created"
    SCHEMA_INITIALIZED = "schema_initialized"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class ProvisioningSaga:
    """
    State and compensation stack of one tenant creation.

    Compensation failures are logged and collected; they never replace the
    error that triggered the rollback.
    """

    def __init__(self, slug: str):
        self.slug = slug
        self.state = ProvisioningState.PENDING
        self.compensation_errors: List[Tuple[str, Exception]] = []
        self._undo: List[Tuple[str, Callable[[], None]]] = []

    def advance(self, state: ProvisioningState) -> None:
        self.state = state
        logger.info(f"Provisioning {self.slug}: {state.value}")

    def push(self, description: str, action: Callable[[], None]) -> None:
        self._undo.append((description, action))

    def rollback(self) -> None:
        while self._undo:
            description, action = self._undo.pop()
            try:
                action()
            except Exception as exc:
                logger.exception(f"Compensation '{description}' failed for {self.slug}")
                self.compensation_errors.append((description, exc))
        self.advance(ProvisioningState.ROLLED_BACK)


@dataclass(frozen=True)
class ProvisioningOutcome:
    created: bool
    db_name: str
    secret_name: str
    message: str


@dataclass(frozen=True)
class ProvisionedTenant:
    tenant: Tenant
    outcome: ProvisioningOutcome


def validate_tenant_name(name: str) -> TenantNames:
    """
    Check a requested display name and derive its identifiers.

    Args:
        name: Display name as submitted

    Returns:
        TenantNames: Slug, database, role and secret names

    Raises:
        InvalidTenantNameException: If the name is too short or too long, has
            no letters or digits, or maps to a reserved route
    """
    name = (name or "").strip()
    if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
        raise InvalidTenantNameException(
            f"Organization name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters"
        )
    if not _HAS_ALNUM.search(name):
        raise InvalidTenantNameException("Organization name must contain a letter or digit")
    names = TenantNames.from_display_name(name)
    if names.slug in RESERVED_SLUGS:
        raise InvalidTenantNameException("Organization name is reserved")
    return names


class TenantProvisioningService:
    """Create organizations and list the ones that exist."""

    def __init__(
        self,
        registry: TenantRegistry,
        provisioner: DatabaseProvisioner,
        secret_store: SecretStore,
        tenant_databases: TenantDatabases,
        cache: TenantResolutionCache,
        timeout_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._registry = registry
        self._provisioner = provisioner
        self._secrets = secret_store
        self._tenant_databases = tenant_databases
        self._cache = cache
        self._timeout = timeout_seconds
        self._clock = clock

    def create_tenant(self, db: Session, name: str, created_by: Optional[int] = None) -> ProvisionedTenant:
        """
        Provision a new organization end to end.

        Args:
            db: Central database session
            name: Requested display name
            created_by: Id of the central user making the request, for the audit log

        Returns:
            ProvisionedTenant: The committed registry row and outcome descriptor

        Raises:
            InvalidTenantNameException: Name fails validation
            DuplicateTenantNameException: Name or slug already registered
            DatabaseProvisioningFailed / SecretProvisioningFailed /
            SchemaInitializationFailed: A step failed; everything was rolled back
            ProvisioningTimeoutError: Deadline passed; everything was rolled back
        """
        names = validate_tenant_name(name)
        if self._registry.name_taken(db, names.display_name, names.slug):
            logger.warning(f"Organization name {names.display_name!r} conflicts with an existing tenant")
            raise DuplicateTenantNameException()

        deadline = Deadline(self._timeout, clock=self._clock, error_class=ProvisioningTimeoutError)
        saga = ProvisioningSaga(names.slug)

        tenant = self._registry.reserve(db, names.display_name, names.slug)
        tenant_id = tenant.id
        saga.push("release registry row", lambda: self._registry.release(db, tenant_id))
        saga.advance(ProvisioningState.NAME_RESERVED)

        try:
            bundle = self._create_database(names, deadline, saga)
            self._create_secret(names, bundle, deadline, saga)
            self._initialize_schema(bundle, deadline, saga)

            deadline.check("commit")
            try:
                tenant = self._registry.mark_provisioned(db, tenant)
            except SQLAlchemyError as exc:
                raise ProvisioningError() from exc
        except Exception as exc:
            saga.rollback()
            log_security_event(
                "TENANT_ROLLED_BACK",
                level=logging.WARNING,
                slug=names.slug,
                reason=type(exc).__name__,
                compensation_failures=len(saga.compensation_errors),
            )
            raise

        saga.advance(ProvisioningState.COMMITTED)
        self._cache.invalidate(names.slug)
        log_security_event("TENANT_CREATED", tenant_id=tenant.id, slug=names.slug, created_by=created_by)

        outcome = ProvisioningOutcome(
            created=True,
            db_name=names.db_name,
            secret_name=names.secret_name,
            message=f"Successfully created database and credentials for organization: {names.display_name}",
        )
        return ProvisionedTenant(tenant=tenant, outcome=outcome)

    def _create_database(self, names: TenantNames, deadline: Deadline, saga: ProvisioningSaga):
        deadline.check("create_database")
        password = secrets.token_urlsafe(24)
        try:
            self._provisioner.create_tenant_database(names.db_name, names.role_name, password)
        except (ProvisionerError, SQLAlchemyError) as exc:
            # A collision means the database or role belongs to someone else;
            # the provisioner already removed anything it created itself.
            logger.error(f"Database creation failed for {names.slug}: {exc}")
            deadline.check("create_database", cause=exc)
            raise DatabaseProvisioningFailed() from exc
        saga.push(
            "drop tenant database",
            lambda: self._provisioner.drop_tenant_database(names.db_name, names.role_name),
        )
        saga.advance(ProvisioningState.DATABASE_CREATED)
        return self._provisioner.connection_bundle(names, password)

    def _create_secret(self, names: TenantNames, bundle, deadline: Deadline, saga: ProvisioningSaga) -> None:
        deadline.check("create_secret")
        try:
            self._secrets.create_secret(
                names.secret_name,
                bundle,
                description=f"Database credentials for {names.display_name} clinic organization",
                tags={"Organization": names.display_name},
            )
        except SecretAlreadyExistsError as exc:
            logger.error(f"Secret {names.secret_name} already exists")
            raise SecretProvisioningFailed() from exc
        except SecretStoreError as exc:
            # The write may have landed before the failure was reported
            saga.push("delete secret", lambda: self._secrets.delete_secret(names.secret_name))
            logger.error(f"Secret creation failed for {names.slug}: {exc}")
            deadline.check("create_secret", cause=exc)
            raise SecretProvisioningFailed() from exc
        saga.push("delete secret", lambda: self._secrets.delete_secret(names.secret_name))
        saga.advance(ProvisioningState.SECRET_CREATED)

    def _initialize_schema(self, bundle, deadline: Deadline, saga: ProvisioningSaga) -> None:
        deadline.check("initialize_schema")
        try:
            self._tenant_databases.initialize_schema(bundle)
        except SQLAlchemyError as exc:
            logger.error(f"Schema initialization failed for {saga.slug}: {exc}")
            deadline.check("initialize_schema", cause=exc)
            raise SchemaInitializationFailed() from exc
        saga.advance(ProvisioningState.SCHEMA_INITIALIZED)

    def list_tenants(self, db: Session) -> List[Tenant]:
        return self._registry.list(db)

    def count_tenants(self, db: Session) -> int:
        return self._registry.count(db)


class TenantAdminService:
    """Seed administrator accounts inside a tenant database."""

    def __init__(self, registry: TenantRegistry, tenant_databases: TenantDatabases, credentials: CredentialStore):
        self._registry = registry
        self._tenant_databases = tenant_databases
        self._credentials = credentials

    def create_admin(
        self,
        db: Session,
        tenant_id: int,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        created_by: Optional[int] = None,
    ) -> OrganizationUser:
        """
        Create an admin profile and its user in one tenant transaction.

        Raises:
            TenantNotFoundException: If no provisioned tenant has this id
            EmailAlreadyExistsException: If the email is taken in that tenant
        """
        tenant = self._registry.get_by_id(db, tenant_id)
        if tenant is None:
            raise TenantNotFoundException()
        slug = tenant.slug

        with self._tenant_databases.session(slug) as tenant_db:
            if tenant_db.query(OrganizationUser.id).filter(OrganizationUser.email == email).first():
                raise EmailAlreadyExistsException()

            profile = AdminProfile()
            tenant_db.add(profile)
            tenant_db.flush()
            user = OrganizationUser(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=self._credentials.hash_password(password),
                admin_profile_id=profile.id,
            )
            tenant_db.add(user)
            try:
                tenant_db.commit()
            except IntegrityError as exc:
                tenant_db.rollback()
                raise EmailAlreadyExistsException() from exc
            tenant_db.refresh(user)
            tenant_db.expunge(user)

        log_security_event("TENANT_ADMIN_CREATED", slug=slug, user_id=user.id, created_by=created_by)
        return user
