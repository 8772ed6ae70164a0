"""
Tests for tenant-scope authentication and cross-tenant isolation.
"""
import pytest

from clinic_api.auth.models import OrganizationUser

from conftest import TEST_PASSWORD, bearer, create_organization, login, seed_admin


@pytest.fixture
def acme(client, central_headers):
    organization = create_organization(client, central_headers, "Acme")
    admin = seed_admin(client, central_headers, organization["id"], "admin@acme.com")
    return {"organization": organization, "admin": admin}


@pytest.fixture
def other(client, central_headers):
    organization = create_organization(client, central_headers, "Other")
    seed_admin(client, central_headers, organization["id"], "admin@other.com")
    return organization


def test_tenant_login(client, container, acme):
    data = login(client, "/Acme/auth/login", "admin@acme.com")
    assert data["user"]["role"] == "admin"
    assert data["user"]["email"] == "admin@acme.com"
    payload = container.tokens.verify_access_token(data["access_token"])
    assert payload.scope == "tenant"
    assert payload.tenant_slug == "acme"
    assert payload.email == "admin@acme.com"


def test_tenant_path_accepts_slug(client, acme):
    login(client, "/acme/auth/login", "admin@acme.com")


def test_tenant_login_wrong_password(client, acme):
    response = client.post("/Acme/auth/login", json={"email": "admin@acme.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_tenant_users_are_not_central_users(client, acme):
    response = client.post("/auth/login", json={"email": "admin@acme.com", "password": TEST_PASSWORD})
    assert response.status_code == 401


def test_tenant_me(client, acme):
    data = login(client, "/Acme/auth/login", "admin@acme.com")
    response = client.get("/Acme/auth/me", headers=bearer(data["access_token"]))
    assert response.status_code == 200
    assert response.json()["email"] == "admin@acme.com"


def test_token_for_one_tenant_rejected_by_another(client, acme, other):
    data = login(client, "/Acme/auth/login", "admin@acme.com")

    response = client.get("/Other/auth/me", headers=bearer(data["access_token"]))
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}

    response = client.post("/Other/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert response.status_code == 401

    response = client.post("/Other/auth/logout", headers=bearer(data["access_token"]))
    assert response.status_code == 401


def test_central_token_rejected_on_tenant_endpoints(client, acme, central_headers):
    response = client.get("/Acme/auth/me", headers=central_headers)
    assert response.status_code == 401


def test_tenant_token_rejected_on_central_endpoints(client, acme):
    data = login(client, "/Acme/auth/login", "admin@acme.com")
    headers = bearer(data["access_token"])
    assert client.get("/organizations", headers=headers).status_code == 401
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_tenant_refresh_and_logout(client, acme):
    data = login(client, "/Acme/auth/login", "admin@acme.com")

    refreshed = client.post("/Acme/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["user"]["role"] == "admin"
    assert client.post("/Acme/auth/refresh", json={"refresh_token": data["refresh_token"]}).status_code == 401

    new_tokens = refreshed.json()
    response = client.post("/Acme/auth/logout", headers=bearer(new_tokens["access_token"]))
    assert response.status_code == 200
    response = client.post("/Acme/auth/refresh", json={"refresh_token": new_tokens["refresh_token"]})
    assert response.status_code == 401


def test_user_without_role_can_log_in_and_refresh(client, container, acme):
    with container.tenant_databases.session("acme") as tenant_db:
        tenant_db.add(OrganizationUser(
            email="pending@acme.com",
            first_name="Pending",
            last_name="User",
            password_hash=container.credentials.hash_password(TEST_PASSWORD),
        ))
        tenant_db.commit()

    data = login(client, "/Acme/auth/login", "pending@acme.com")
    assert data["user"]["role"] == "unassigned"

    refreshed = client.post("/Acme/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["user"]["role"] == "unassigned"

    response = client.get("/Acme/auth/me", headers=bearer(refreshed.json()["access_token"]))
    assert response.status_code == 200
    assert response.json()["role"] == "unassigned"


def test_unknown_tenant(client, central_headers):
    response = client.get("/Nowhere/auth/me", headers=central_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Organization not found"}
