"""
Tenant-specific exceptions.
"""
from ..exceptions import (
    ConflictError,
    NotFoundError,
    OperationTimeoutError,
    ProvisioningError,
    ValidationFailedError,
)


class TenantNotFoundException(NotFoundError):
    """Exception raised when a path or id names no known organization."""
    def __init__(self, detail: str = "Organization not found"):
        super().__init__(detail)


class DuplicateTenantNameException(ConflictError):
    """Exception raised when the name, or a name with the same slug, is taken."""
    def __init__(self, detail: str = "Organization name already exists"):
        super().__init__(detail)


class InvalidTenantNameException(ValidationFailedError):
    def __init__(self, detail: str = "Invalid organization name"):
        super().__init__(detail)


class DatabaseProvisioningFailed(ProvisioningError):
    """Tenant database or role could not be created."""
    kind = "database"


class SecretProvisioningFailed(ProvisioningError):
    """Credentials secret could not be stored."""
    kind = "secret"


class SchemaInitializationFailed(ProvisioningError):
    """Tenant tables could not be created in the new database."""
    kind = "schema"


class ProvisioningTimeoutError(OperationTimeoutError):
    """Tenant creation ran past its deadline and was rolled back."""
