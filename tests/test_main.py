"""
Tests for the main application endpoints and error rendering.
"""


def test_root_endpoint(client):
    """
    Test the root endpoint returns a welcome message.
    """
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


def test_health_check(client):
    """
    Test the health check endpoint reports the registry database.
    """
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"


def test_unknown_tenant_is_not_found(client):
    response = client.post("/No Such Clinic/auth/login", json={"email": "a@example.com", "password": "secret123"})
    assert response.status_code == 404
    assert response.json() == {"error": "Organization not found"}


def test_validation_errors_are_bad_request(client):
    response = client.post("/auth/login", json={"email": "not-an-email", "password": "secret123"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation error"
    assert body["errors"]


def test_request_id_header(client):
    response = client.get("/")
    assert response.headers["X-Request-ID"]
    assert "X-Process-Time" in response.headers


def test_incoming_request_id_is_kept(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
