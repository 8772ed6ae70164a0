"""
Tests for the rate limiting middleware.
"""
from clinic_api.core.middleware import RateLimitMiddleware

from conftest import make_client, make_settings


def test_rate_limit_rejects_excess_requests(tmp_path):
    settings = make_settings(tmp_path, rate_limit_per_minute=2)
    with make_client(settings) as client:
        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200
        response = client.get("/")
    assert response.status_code == 429
    assert response.json() == {"error": "Rate limit exceeded"}


def test_rate_limit_disabled_by_default(client):
    for _ in range(10):
        assert client.get("/").status_code == 200


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def _noop_app(scope, receive, send):
    pass


def test_rate_limit_window_slides():
    clock = FakeClock()
    limiter = RateLimitMiddleware(_noop_app, rate_limit=1, window_seconds=60.0, clock=clock)
    assert limiter._allow("10.0.0.1")
    assert not limiter._allow("10.0.0.1")
    clock.now += 60
    assert limiter._allow("10.0.0.1")


def test_idle_clients_are_forgotten():
    clock = FakeClock()
    limiter = RateLimitMiddleware(_noop_app, rate_limit=5, window_seconds=60.0, clock=clock)
    for i in range(100):
        limiter._allow(f"10.0.0.{i}")
    assert len(limiter._hits) == 100

    clock.now += 61
    assert limiter._allow("10.0.1.1")
    assert list(limiter._hits) == ["10.0.1.1"]
