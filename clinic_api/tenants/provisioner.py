"""
Physical database provisioning for tenants.

A provisioner creates one database plus one login role per tenant, granting
the role CONNECT, CREATE and TEMP on its own database and ownership of that
database's public schema, and nothing on any other database. Creation that
fails halfway removes whatever it created before re-raising. Dropping is
idempotent; it is used as a rollback compensator.
"""
import logging
import os
from abc import ABC, abstractmethod

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ..database import build_engine
from .naming import TenantNames
from .secrets import SecretBundle

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
DUPLICATE_DATABASE = "42P04"
DUPLICATE_OBJECT = "42710"


class ProvisionerError(Exception):
    """Database server refused or failed an administrative command."""


class DatabaseAlreadyExistsError(ProvisionerError):
    pass


class RoleAlreadyExistsError(ProvisionerError):
    pass


class DatabaseProvisioner(ABC):

    @abstractmethod
    def create_tenant_database(self, db_name: str, role_name: str, password: str) -> None:
        """
        Create a login role and a database it owns.

        Raises:
            RoleAlreadyExistsError: If the role name is taken
            DatabaseAlreadyExistsError: If the database name is taken
            ProvisionerError: For any other failure
        """

    @abstractmethod
    def drop_tenant_database(self, db_name: str, role_name: str) -> None:
        """Drop the database and role. Missing targets are not an error."""

    @abstractmethod
    def connection_bundle(self, names: TenantNames, password: str) -> SecretBundle:
        """Credentials the tenant role uses to reach its database."""

    def close(self) -> None:
        pass


class SQLiteProvisioner(DatabaseProvisioner):
    """
    One sqlite file per tenant under ``directory``.

    sqlite has no roles; the role name only travels in the credentials bundle.
    """

    def __init__(self, directory: str):
        self._directory = os.path.abspath(directory)

    def _path(self, db_name: str) -> str:
        return os.path.join(self._directory, f"{db_name}.db")

    def database_exists(self, db_name: str) -> bool:
        return os.path.exists(self._path(db_name))

    def create_tenant_database(self, db_name, role_name, password):
        os.makedirs(self._directory, exist_ok=True)
        try:
            # An empty file is a valid sqlite database
            with open(self._path(db_name), "x"):
                pass
        except FileExistsError as exc:
            raise DatabaseAlreadyExistsError(f"Database {db_name} already exists") from exc
        except OSError as exc:
            raise ProvisionerError(f"Failed to create database {db_name}") from exc
        logger.info(f"Created sqlite tenant database {db_name}")

    def drop_tenant_database(self, db_name, role_name):
        path = self._path(db_name)
        for candidate in (path, f"{path}-journal", f"{path}-wal", f"{path}-shm"):
            if os.path.exists(candidate):
                os.remove(candidate)
        logger.info(f"Dropped sqlite tenant database {db_name}")

    def connection_bundle(self, names, password):
        return SecretBundle(
            username=names.role_name,
            password=password,
            host=self._directory,
            port=0,
            dbname=names.db_name,
            engine="sqlite",
        )


class PostgresProvisioner(DatabaseProvisioner):
    """
    Provision tenants on a PostgreSQL server through an administrative connection.

    DDL runs in autocommit mode because CREATE DATABASE cannot run inside a
    transaction block.
    """

    def __init__(self, admin_url: str, host: str, port: int, timeout_seconds: int = 10):
        self._admin_url = make_url(admin_url)
        self._host = host
        self._port = port
        self._timeout = timeout_seconds
        self._base_engine = build_engine(admin_url, timeout_seconds)
        self._engine = self._base_engine.execution_options(isolation_level="AUTOCOMMIT")
        self._quote = self._engine.dialect.identifier_preparer.quote_identifier

    @staticmethod
    def _literal(value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def create_tenant_database(self, db_name, role_name, password):
        db, role = self._quote(db_name), self._quote(role_name)
        created_role = created_db = False
        try:
            with self._engine.connect() as conn:
                if conn.execute(text("SELECT 1 FROM pg_roles WHERE rolname = :role"), {"role": role_name}).first():
                    raise RoleAlreadyExistsError(f"Role {role_name} already exists")
                if conn.execute(text("SELECT 1 FROM pg_database WHERE datname = :db"), {"db": db_name}).first():
                    raise DatabaseAlreadyExistsError(f"Database {db_name} already exists")

                logger.info(f"Creating role {role_name}")
                conn.exec_driver_sql(
                    f"CREATE ROLE {role} WITH LOGIN PASSWORD {self._literal(password)} "
                    "NOCREATEDB NOCREATEROLE NOSUPERUSER"
                )
                created_role = True

                logger.info(f"Creating database {db_name}")
                conn.exec_driver_sql(f"CREATE DATABASE {db} OWNER {role}")
                created_db = True

                conn.exec_driver_sql(f"REVOKE ALL ON DATABASE {db} FROM PUBLIC")
                conn.exec_driver_sql(f"GRANT CONNECT, CREATE, TEMPORARY ON DATABASE {db} TO {role}")

            tenant_engine = build_engine(
                self._admin_url.set(database=db_name).render_as_string(hide_password=False),
                self._timeout,
            )
            try:
                with tenant_engine.execution_options(isolation_level="AUTOCOMMIT").connect() as conn:
                    conn.exec_driver_sql(f"ALTER SCHEMA public OWNER TO {role}")
            finally:
                tenant_engine.dispose()
        except ProvisionerError:
            self._undo_partial_create(db_name, role_name, created_db, created_role)
            raise
        except DBAPIError as exc:
            self._undo_partial_create(db_name, role_name, created_db, created_role)
            code = getattr(exc.orig, "pgcode", None)
            if code == DUPLICATE_DATABASE:
                raise DatabaseAlreadyExistsError(f"Database {db_name} already exists") from exc
            if code == DUPLICATE_OBJECT:
                raise RoleAlreadyExistsError(f"Role {role_name} already exists") from exc
            raise ProvisionerError(f"Failed to create database {db_name}") from exc
        except SQLAlchemyError as exc:
            self._undo_partial_create(db_name, role_name, created_db, created_role)
            raise ProvisionerError(f"Failed to create database {db_name}") from exc

        logger.info(f"Database {db_name} ready for role {role_name}")

    def _undo_partial_create(self, db_name: str, role_name: str, created_db: bool, created_role: bool) -> None:
        if not (created_db or created_role):
            return
        try:
            with self._engine.connect() as conn:
                if created_db:
                    conn.exec_driver_sql(f"DROP DATABASE IF EXISTS {self._quote(db_name)}")
                if created_role:
                    conn.exec_driver_sql(f"DROP ROLE IF EXISTS {self._quote(role_name)}")
        except SQLAlchemyError:
            logger.exception(f"Could not remove partially created database {db_name} / role {role_name}")

    def drop_tenant_database(self, db_name, role_name):
        with self._engine.connect() as conn:
            conn.execute(
                text(
                    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                    "WHERE datname = :db AND pid <> pg_backend_pid()"
                ),
                {"db": db_name},
            )
            conn.exec_driver_sql(f"DROP DATABASE IF EXISTS {self._quote(db_name)}")
            conn.exec_driver_sql(f"DROP ROLE IF EXISTS {self._quote(role_name)}")
        logger.info(f"Dropped database {db_name} and role {role_name}")

    def connection_bundle(self, names, password):
        return SecretBundle(
            username=names.role_name,
            password=password,
            host=self._host,
            port=self._port,
            dbname=names.db_name,
            engine="postgres",
        )

    def close(self) -> None:
        self._base_engine.dispose()
