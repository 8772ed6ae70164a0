"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
import logging
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEV_ACCESS_SECRET = "dev-access-secret-change-in-production"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-in-production"


class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        environment: development, test or production
        database_url: Connection string of the central registry database

        # JWT settings
        jwt_access_secret: Signing key for access tokens
        jwt_refresh_secret: Signing key for the JWT half of refresh tokens
        jwt_algorithm: Algorithm used for JWT encoding (typically HS256)
        jwt_issuer / jwt_audience: Claims every token is bound to
        access_token_expire_minutes: Access token lifetime
        refresh_token_expire_days: Refresh token lifetime

        # Credential hashing
        password_pepper: Server-wide HMAC key applied to passwords before hashing
        bcrypt_rounds: bcrypt cost factor

        # Tenant infrastructure
        secret_store_backend: "memory" or "aws"
        database_provisioner: "sqlite" or "postgres"
        tenant_database_dir: Directory holding sqlite tenant databases
        admin_database_url: Administrative connection used to create tenant databases
        tenant_db_host / tenant_db_port: Address written into tenant credential bundles

        # Timeouts
        provisioning_timeout_seconds: Overall deadline for tenant creation
        request_timeout_seconds: Overall deadline for token refresh
        external_call_timeout_seconds: Per-call driver timeouts
    """
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite:///./clinic.db"

    # JWT settings
    jwt_access_secret: str = DEV_ACCESS_SECRET
    jwt_refresh_secret: str = DEV_REFRESH_SECRET
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "clinic-api"
    jwt_audience: str = "clinic-clients"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7

    # Credential hashing
    password_pepper: str = ""
    bcrypt_rounds: int = 12

    # Tenant resolution cache
    tenant_cache_ttl_seconds: float = 60.0
    tenant_cache_max_entries: int = 1024

    # Secret store
    secret_store_backend: str = "memory"
    aws_region: str = "us-east-1"

    # Tenant database provisioning
    database_provisioner: str = "sqlite"
    tenant_database_dir: str = "./tenant_databases"
    admin_database_url: Optional[str] = None
    tenant_db_host: str = "localhost"
    tenant_db_port: int = 5432

    # Timeouts
    provisioning_timeout_seconds: float = 60.0
    request_timeout_seconds: float = 10.0
    external_call_timeout_seconds: int = 10

    # Registration
    auto_verify_registrations: bool = False

    # HTTP settings
    cors_origins: List[str] = ["http://localhost:3000"]
    rate_limit_per_minute: int = 0

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate_for_production(self) -> None:
        """
        Refuse to run a production process with development secrets.

        Raises:
            ValueError: If a JWT signing key still has its placeholder value
        """
        if not self.is_production:
            return
        if self.jwt_access_secret == DEV_ACCESS_SECRET or self.jwt_refresh_secret == DEV_REFRESH_SECRET:
            raise ValueError("JWT secrets must be configured in production")
        if not self.password_pepper:
            logger.warning("PASSWORD_PEPPER not set in production; password hashes rely on salt only")


@lru_cache()
def get_settings() -> Settings:
    """Settings for the process entry point, read once from the environment."""
    return Settings()
