"""
Test configuration for the clinic API.

Every test gets its own sqlite registry database and tenant directory under
``tmp_path``, an in-memory secret store and cheap bcrypt hashing.
"""
import pytest
from fastapi.testclient import TestClient

from clinic_api.config import Settings
from clinic_api.container import ServiceContainer
from clinic_api.main import create_app

TEST_PASSWORD = "Password123!"


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'central.db'}",
        tenant_database_dir=str(tmp_path / "tenants"),
        bcrypt_rounds=4,
        password_pepper="test-pepper",
        secret_store_backend="memory",
        database_provisioner="sqlite",
        rate_limit_per_minute=0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(settings: Settings, **container_overrides) -> TestClient:
    """Build an app around a container with some collaborators replaced. Use as a context manager."""
    container = ServiceContainer.from_settings(settings, **container_overrides)
    return TestClient(create_app(settings, container))


def register_central_user(container, email="admin@example.com", name="Platform Admin",
                          password=TEST_PASSWORD, verified=True):
    db = container.session_factory()
    try:
        return container.auth_service.register(db, email, name, password, auto_verify=verified)
    finally:
        db.close()


def login(client, path, email, password=TEST_PASSWORD):
    response = client.post(path, json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture(scope="function")
def container(settings):
    """
    Create a started service container for each test.
    """
    container = ServiceContainer.from_settings(settings)
    container.startup()
    yield container
    container.shutdown()


@pytest.fixture(scope="function")
def db(container):
    session = container.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(settings, container):
    """
    Create a test client running the full application lifespan.
    """
    with TestClient(create_app(settings, container)) as client:
        yield client


@pytest.fixture(scope="function")
def central_user(container):
    return register_central_user(container)


@pytest.fixture(scope="function")
def central_session(client, central_user):
    """Tokens of a verified central user, logged in through the API."""
    return login(client, "/auth/login", central_user["email"])


@pytest.fixture(scope="function")
def central_headers(central_session):
    return bearer(central_session["access_token"])


def create_organization(client, headers, name):
    response = client.post("/organizations", json={"name": name}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def seed_admin(client, headers, organization_id, email, password=TEST_PASSWORD):
    response = client.post(
        f"/organizations/{organization_id}/admins",
        json={"email": email, "password": password, "first_name": "Org", "last_name": "Admin"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()
