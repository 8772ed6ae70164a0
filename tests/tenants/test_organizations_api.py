"""
Tests for the organization management endpoints, end to end.
"""
from clinic_api.tenants.secrets import InMemorySecretStore, SecretStoreError

from conftest import (
    bearer,
    create_organization,
    login,
    make_client,
    register_central_user,
    seed_admin,
)


class FailingSecretStore(InMemorySecretStore):
    def create_secret(self, name, bundle, description="", tags=None):
        raise SecretStoreError("secrets manager unavailable")


def test_create_organization_then_log_in_as_its_admin(client, central_headers):
    response = client.post("/organizations", json={"name": "Test Clinic"}, headers=central_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Test Clinic"
    assert data["slug"] == "test_clinic"
    assert data["database"]["created"] is True
    assert data["database"]["dbName"] == "clinic_test_clinic"
    assert data["database"]["secretName"] == "clinic-db-test_clinic"
    assert data["database"]["message"]

    seed_admin(client, central_headers, data["id"], "admin@testclinic.com")
    tokens = login(client, "/Test Clinic/auth/login", "admin@testclinic.com")
    assert tokens["user"]["role"] == "admin"


def test_create_organization_after_not_found_lookup(client, central_headers):
    # Negative answer cached first; creation must clear it
    assert client.post("/Test Clinic/auth/login",
                       json={"email": "a@testclinic.com", "password": "secret123"}).status_code == 404
    organization = create_organization(client, central_headers, "Test Clinic")
    seed_admin(client, central_headers, organization["id"], "admin@testclinic.com")
    login(client, "/Test Clinic/auth/login", "admin@testclinic.com")


def test_organizations_require_central_token(client):
    assert client.post("/organizations", json={"name": "Test Clinic"}).status_code == 401
    assert client.get("/organizations").status_code == 401
    assert client.get("/organizations/count").status_code == 401


def test_duplicate_organization_name(client, central_headers):
    create_organization(client, central_headers, "Test Clinic")
    response = client.post("/organizations", json={"name": "Test Clinic"}, headers=central_headers)
    assert response.status_code == 409
    assert response.json() == {"error": "Organization name already exists"}

    response = client.post("/organizations", json={"name": "Test-Clinic"}, headers=central_headers)
    assert response.status_code == 409


def test_invalid_organization_names(client, central_headers):
    for name in ["abc", "Auth", "!!!!"]:
        response = client.post("/organizations", json={"name": name}, headers=central_headers)
        assert response.status_code == 400, name
        assert "error" in response.json()

    response = client.post("/organizations", json={}, headers=central_headers)
    assert response.status_code == 400


def test_list_and_count_organizations(client, central_headers):
    create_organization(client, central_headers, "Acme")
    create_organization(client, central_headers, "Other")

    response = client.get("/organizations", headers=central_headers)
    assert response.status_code == 200
    assert [organization["name"] for organization in response.json()] == ["Acme", "Other"]

    response = client.get("/organizations/count", headers=central_headers)
    assert response.json() == {"count": 2}


def test_failed_provisioning_leaves_no_organization(settings):
    with make_client(settings, secret_store=FailingSecretStore()) as client:
        user = register_central_user(client.app.state.container)
        headers = bearer(login(client, "/auth/login", user["email"])["access_token"])

        response = client.post("/organizations", json={"name": "Test Clinic"}, headers=headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create organization"}

        assert client.get("/organizations", headers=headers).json() == []
        assert client.get("/organizations/count", headers=headers).json() == {"count": 0}
        response = client.post("/Test Clinic/auth/login",
                               json={"email": "a@testclinic.com", "password": "secret123"})
        assert response.status_code == 404


def test_seed_admin_unknown_organization(client, central_headers):
    response = client.post(
        "/organizations/999/admins",
        json={"email": "admin@x.com", "password": "secret123", "first_name": "A", "last_name": "B"},
        headers=central_headers,
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Organization not found"}


def test_seed_admin_duplicate_email(client, central_headers):
    organization = create_organization(client, central_headers, "Acme")
    seed_admin(client, central_headers, organization["id"], "admin@acme.com")
    response = client.post(
        f"/organizations/{organization['id']}/admins",
        json={"email": "admin@acme.com", "password": "secret123", "first_name": "A", "last_name": "B"},
        headers=central_headers,
    )
    assert response.status_code == 409


def test_same_email_in_two_organizations(client, central_headers):
    acme = create_organization(client, central_headers, "Acme")
    other = create_organization(client, central_headers, "Other")
    seed_admin(client, central_headers, acme["id"], "admin@shared.com")
    seed_admin(client, central_headers, other["id"], "admin@shared.com", password="Different123!")

    login(client, "/Acme/auth/login", "admin@shared.com")
    login(client, "/Other/auth/login", "admin@shared.com", password="Different123!")
    response = client.post("/Acme/auth/login", json={"email": "admin@shared.com", "password": "Different123!"})
    assert response.status_code == 401
