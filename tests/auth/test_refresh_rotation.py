"""
Tests for refresh-token rotation, replay rejection and logout revocation.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from clinic_api.auth.exceptions import InvalidTokenException
from clinic_api.exceptions import OperationTimeoutError

from conftest import bearer, login


def test_refresh_rotates_tokens(client, container, central_session):
    response = client.post("/auth/refresh", json={"refresh_token": central_session["refresh_token"]})
    assert response.status_code == 200
    data = response.json()
    assert data["refresh_token"] != central_session["refresh_token"]
    assert container.tokens.verify_access_token(data["access_token"]).email == central_session["user"]["email"]

    # The rotated token works, the old one is gone
    assert client.post("/auth/refresh", json={"refresh_token": data["refresh_token"]}).status_code == 200


def test_used_refresh_token_cannot_refresh_again(client, central_session):
    first = client.post("/auth/refresh", json={"refresh_token": central_session["refresh_token"]})
    assert first.status_code == 200

    second = client.post("/auth/refresh", json={"refresh_token": central_session["refresh_token"]})
    assert second.status_code == 401
    assert second.json() == {"error": "Invalid or expired token"}


def test_new_login_invalidates_previous_refresh_token(client, central_user, central_session):
    login(client, "/auth/login", central_user["email"])
    response = client.post("/auth/refresh", json={"refresh_token": central_session["refresh_token"]})
    assert response.status_code == 401


def test_logout_revokes_refresh_token(client, container, db, central_user, central_session):
    response = client.post("/auth/logout", headers=bearer(central_session["access_token"]))
    assert response.status_code == 200
    assert container.central_users.get_by_id(db, central_user["id"]).refresh_hash is None

    response = client.post("/auth/refresh", json={"refresh_token": central_session["refresh_token"]})
    assert response.status_code == 401


def test_logout_requires_token(client):
    assert client.post("/auth/logout").status_code == 401


@pytest.mark.parametrize("token", ["abc", "a.b.c", "a.b.c.d", "x" * 40])
def test_malformed_refresh_tokens(client, central_session, token):
    response = client.post("/auth/refresh", json={"refresh_token": token})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}


def test_refresh_with_forged_secret_half(client, central_session):
    signed = ".".join(central_session["refresh_token"].split(".")[:3])
    response = client.post("/auth/refresh", json={"refresh_token": f"{signed}.{'0' * 64}"})
    assert response.status_code == 401


def test_refresh_token_cannot_be_used_as_access_token_for_refresh(client, central_session):
    response = client.post(
        "/auth/refresh", json={"refresh_token": f"{central_session['access_token']}.{'0' * 64}"}
    )
    assert response.status_code == 401


def test_concurrent_refresh_has_exactly_one_winner(client, container, central_session):
    token = central_session["refresh_token"]
    attempts = 5
    barrier = threading.Barrier(attempts)

    def attempt():
        db = container.session_factory()
        try:
            barrier.wait()
            container.auth_service.refresh(db, container.central_users, token)
            return "ok"
        except InvalidTokenException:
            return "rejected"
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(lambda _: attempt(), range(attempts)))

    assert results.count("ok") == 1
    assert results.count("rejected") == attempts - 1


def test_refresh_past_deadline_times_out(container, db, central_user, monkeypatch):
    session = container.auth_service.login(db, container.central_users, central_user["email"], "Password123!")

    clock = iter([0.0, 100.0, 100.0, 100.0])
    service = container.auth_service
    monkeypatch.setattr(service, "_clock", lambda: next(clock))
    monkeypatch.setattr(service, "_request_timeout", 1.0)

    with pytest.raises(OperationTimeoutError):
        service.refresh(db, container.central_users, session.refresh_token)
