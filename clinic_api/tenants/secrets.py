"""
Secret store adapters for tenant database credentials.

``SecretStore`` is the capability the provisioning code depends on. Two
implementations exist: ``AwsSecretStore`` (AWS Secrets Manager through boto3)
and ``InMemorySecretStore`` for development and tests. Which one a process
uses is decided once, when the service container is built.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class SecretStoreError(Exception):
    """The secret store could not complete a call."""


class SecretAlreadyExistsError(SecretStoreError):
    pass


class SecretNotFoundError(SecretStoreError):
    pass


class SecretBundle(BaseModel):
    """
    Credentials bundle for one tenant database.

    Serialized with the key names RDS-managed secrets use (``dbname``).
    """
    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    host: str
    port: int
    database_name: str = Field(..., alias="dbname")
    engine: str

    def to_secret_string(self) -> str:
        return json.dumps(self.model_dump(by_alias=True))

    @classmethod
    def from_secret_string(cls, value: str) -> "SecretBundle":
        return cls.model_validate(json.loads(value))


class SecretStore(ABC):
    """Create, read and delete credential bundles by name."""

    @abstractmethod
    def create_secret(self, name: str, bundle: SecretBundle, description: str = "",
                      tags: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Store a new secret.

        Raises:
            SecretAlreadyExistsError: If a secret with this name exists
            SecretStoreError: For any other failure
        """

    @abstractmethod
    def get_secret(self, name: str) -> SecretBundle:
        """
        Raises:
            SecretNotFoundError: If no secret has this name
        """

    @abstractmethod
    def delete_secret(self, name: str) -> None:
        """Delete without recovery window. Deleting a missing secret is not an error."""


class InMemorySecretStore(SecretStore):
    """
    Process-local secret store.

    Responses mirror the shape Secrets Manager returns (ARN, name, version)
    so callers cannot tell the two apart.
    """

    def __init__(self, region: str = "us-east-1", account_id: str = "000000000000"):
        self._region = region
        self._account_id = account_id
        self._secrets: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _arn(self, name: str) -> str:
        return f"arn:aws:secretsmanager:{self._region}:{self._account_id}:secret:{name}"

    def create_secret(self, name, bundle, description="", tags=None):
        with self._lock:
            if name in self._secrets:
                raise SecretAlreadyExistsError(f"Secret {name} already exists")
            self._secrets[name] = bundle.to_secret_string()
        logger.info(f"[SecretStore memory] Created secret {name}")
        return {"arn": self._arn(name), "name": name, "version_id": "memory-v1"}

    def get_secret(self, name):
        value = self._secrets.get(name)
        if value is None:
            raise SecretNotFoundError(f"Secret {name} not found")
        return SecretBundle.from_secret_string(value)

    def delete_secret(self, name):
        with self._lock:
            removed = self._secrets.pop(name, None)
        if removed is not None:
            logger.info(f"[SecretStore memory] Deleted secret {name}")

    def __contains__(self, name: str) -> bool:
        return name in self._secrets


class AwsSecretStore(SecretStore):
    """AWS Secrets Manager backed store."""

    def __init__(self, region: str, timeout_seconds: int = 10, client=None):
        self._client = client or boto3.client(
            "secretsmanager",
            region_name=region,
            config=Config(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 2},
            ),
        )

    def create_secret(self, name, bundle, description="", tags=None):
        params = {"Name": name, "SecretString": bundle.to_secret_string()}
        if description:
            params["Description"] = description
        if tags:
            params["Tags"] = [{"Key": key, "Value": value} for key, value in tags.items()]
        try:
            response = self._client.create_secret(**params)
        except ClientError as exc:
            if exc.response["Error"]["Code"] == "ResourceExistsException":
                raise SecretAlreadyExistsError(f"Secret {name} already exists") from exc
            raise SecretStoreError(f"Failed to create secret {name}") from exc
        except BotoCoreError as exc:
            raise SecretStoreError(f"Failed to create secret {name}") from exc
        logger.info(f"[SecretStore aws] Created secret {name}")
        return {"arn": response["ARN"], "name": response["Name"], "version_id": response.get("VersionId", "")}

    def get_secret(self, name):
        try:
            response = self._client.get_secret_value(SecretId=name)
        except ClientError as exc:
            if exc.response["Error"]["Code"] == "ResourceNotFoundException":
                raise SecretNotFoundError(f"Secret {name} not found") from exc
            raise SecretStoreError(f"Failed to read secret {name}") from exc
        except BotoCoreError as exc:
            raise SecretStoreError(f"Failed to read secret {name}") from exc
        return SecretBundle.from_secret_string(response["SecretString"])

    def delete_secret(self, name):
        try:
            self._client.delete_secret(SecretId=name, ForceDeleteWithoutRecovery=True)
        except ClientError as exc:
            if exc.response["Error"]["Code"] == "ResourceNotFoundException":
                return
            raise SecretStoreError(f"Failed to delete secret {name}") from exc
        except BotoCoreError as exc:
            raise SecretStoreError(f"Failed to delete secret {name}") from exc
        logger.info(f"[SecretStore aws] Deleted secret {name}")
