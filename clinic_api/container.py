"""
Explicit wiring of the application's services.

``ServiceContainer.from_settings`` builds every collaborator once per process;
the FastAPI lifespan in ``main`` owns ``startup`` and ``shutdown``. Tests
replace individual collaborators through keyword overrides.
"""
import logging
from typing import Any

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .auth.repository import CentralUserStore, TenantUserStore
from .auth.service import AuthService
from .config import Settings
from .core.security import CredentialStore
from .core.tokens import TokenService
from .database import CentralBase, build_engine
from .tenants.cache import TenantResolutionCache
from .tenants.connections import TenantDatabases
from .tenants.provisioner import DatabaseProvisioner, PostgresProvisioner, SQLiteProvisioner
from .tenants.registry import TenantRegistry
from .tenants.secrets import AwsSecretStore, InMemorySecretStore, SecretStore
from .tenants.service import TenantAdminService, TenantProvisioningService

# Set up logging
logger = logging.getLogger(__name__)


def build_secret_store(settings: Settings) -> SecretStore:
    if settings.secret_store_backend == "aws":
        logger.info(f"Using AWS Secrets Manager in {settings.aws_region}")
        return AwsSecretStore(settings.aws_region, settings.external_call_timeout_seconds)
    if settings.secret_store_backend == "memory":
        logger.info("Using in-memory secret store")
        return InMemorySecretStore(region=settings.aws_region)
    raise ValueError(f"Unknown secret store backend: {settings.secret_store_backend}")


def build_provisioner(settings: Settings) -> DatabaseProvisioner:
    if settings.database_provisioner == "postgres":
        if not settings.admin_database_url:
            raise ValueError("ADMIN_DATABASE_URL is required for the postgres provisioner")
        return PostgresProvisioner(
            settings.admin_database_url,
            settings.tenant_db_host,
            settings.tenant_db_port,
            settings.external_call_timeout_seconds,
        )
    if settings.database_provisioner == "sqlite":
        return SQLiteProvisioner(settings.tenant_database_dir)
    raise ValueError(f"Unknown database provisioner: {settings.database_provisioner}")


class ServiceContainer:
    """Every long-lived collaborator of the application."""

    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        credentials: CredentialStore,
        tokens: TokenService,
        registry: TenantRegistry,
        secret_store: SecretStore,
        provisioner: DatabaseProvisioner,
    ):
        self.settings = settings
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
        self.credentials = credentials
        self.tokens = tokens
        self.registry = registry
        self.secret_store = secret_store
        self.provisioner = provisioner

        self.central_users = CentralUserStore()
        self.tenant_users = TenantUserStore()
        self.tenant_cache = TenantResolutionCache(
            self._tenant_exists,
            ttl_seconds=settings.tenant_cache_ttl_seconds,
            max_entries=settings.tenant_cache_max_entries,
        )
        self.tenant_databases = TenantDatabases(secret_store, settings.external_call_timeout_seconds)
        self.auth_service = AuthService(tokens, credentials, settings.request_timeout_seconds)
        self.provisioning_service = TenantProvisioningService(
            registry,
            provisioner,
            secret_store,
            self.tenant_databases,
            self.tenant_cache,
            timeout_seconds=settings.provisioning_timeout_seconds,
        )
        self.tenant_admin_service = TenantAdminService(registry, self.tenant_databases, credentials)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ServiceContainer":
        """
        Build the container, constructing anything not given in ``overrides``.

        Args:
            settings: Application settings
            overrides: Any of engine, credentials, tokens, registry,
                secret_store, provisioner

        Returns:
            ServiceContainer: Ready to start
        """
        credentials = overrides.get("credentials") or CredentialStore(
            settings.password_pepper, settings.bcrypt_rounds
        )
        return cls(
            settings=settings,
            engine=overrides.get("engine") or build_engine(
                settings.database_url, settings.external_call_timeout_seconds
            ),
            credentials=credentials,
            tokens=overrides.get("tokens") or TokenService(settings, credentials),
            registry=overrides.get("registry") or TenantRegistry(),
            secret_store=overrides.get("secret_store") or build_secret_store(settings),
            provisioner=overrides.get("provisioner") or build_provisioner(settings),
        )

    def _tenant_exists(self, slug: str) -> bool:
        db = self.session_factory()
        try:
            return self.registry.exists(db, slug)
        finally:
            db.close()

    def startup(self) -> None:
        CentralBase.metadata.create_all(bind=self.engine)
        logger.info("Central registry schema ready")

    def shutdown(self) -> None:
        self.tenant_databases.close()
        self.provisioner.close()
        self.engine.dispose()
        logger.info("Service container shut down")


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
