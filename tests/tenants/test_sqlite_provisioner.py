"""
Tests for the sqlite database provisioner and tenant connections.
"""
import os

import pytest
from sqlalchemy import inspect

from clinic_api.tenants.connections import TenantDatabases
from clinic_api.tenants.naming import TenantNames
from clinic_api.tenants.provisioner import DatabaseAlreadyExistsError, SQLiteProvisioner
from clinic_api.tenants.secrets import InMemorySecretStore, SecretNotFoundError


@pytest.fixture
def provisioner(tmp_path):
    return SQLiteProvisioner(str(tmp_path / "tenants"))


def test_create_and_drop(provisioner, tmp_path):
    provisioner.create_tenant_database("clinic_acme", "acme_user", "pw")
    assert provisioner.database_exists("clinic_acme")
    assert os.path.exists(tmp_path / "tenants" / "clinic_acme.db")

    provisioner.drop_tenant_database("clinic_acme", "acme_user")
    assert not provisioner.database_exists("clinic_acme")


def test_create_existing_database_fails(provisioner):
    provisioner.create_tenant_database("clinic_acme", "acme_user", "pw")
    with pytest.raises(DatabaseAlreadyExistsError):
        provisioner.create_tenant_database("clinic_acme", "acme_user", "pw")
    assert provisioner.database_exists("clinic_acme")


def test_drop_missing_database_is_noop(provisioner):
    provisioner.drop_tenant_database("clinic_nothing", "nothing_user")


def test_connection_bundle(provisioner, tmp_path):
    bundle = provisioner.connection_bundle(TenantNames.from_display_name("Acme"), "pw")
    assert bundle.engine == "sqlite"
    assert bundle.username == "acme_user"
    assert bundle.database_name == "clinic_acme"
    assert bundle.host == os.path.abspath(str(tmp_path / "tenants"))


def test_tenant_databases_use_secret_bundle(provisioner):
    names = TenantNames.from_display_name("Acme")
    provisioner.create_tenant_database(names.db_name, names.role_name, "pw")
    store = InMemorySecretStore()
    bundle = provisioner.connection_bundle(names, "pw")
    store.create_secret(names.secret_name, bundle)

    databases = TenantDatabases(store)
    databases.initialize_schema(bundle)
    engine = databases.engine_for("acme")
    assert databases.engine_for("acme") is engine
    assert "organization_users" in inspect(engine).get_table_names()

    with databases.session("acme") as session:
        assert session.bind is engine

    databases.close()


def test_tenant_databases_unknown_tenant():
    with pytest.raises(SecretNotFoundError):
        TenantDatabases(InMemorySecretStore()).engine_for("missing")
