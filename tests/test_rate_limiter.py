# tests/test_rate_limiter.py
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from backend.main import create_app
from backend.middleware.rate_limiter import client_ip, reported_client_ip
from backend.services.rate_limit import MemoryRateLimiter, RedisRateLimiter, build_rate_limiter
from conftest import make_settings


class TickingClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_memory_limiter_fixed_window():
    clock = TickingClock(now=900.0 * 1000 + 10)
    limiter = MemoryRateLimiter(clock=clock)

    results = [await limiter.hit("api:1.2.3.4", limit=3, period=900) for _ in range(4)]
    assert [result.allowed for result in results] == [True, True, True, False]
    assert [result.remaining for result in results] == [2, 1, 0, 0]
    assert results[-1].retry_after == 890

    # other clients have their own counter
    assert (await limiter.hit("api:5.6.7.8", limit=3, period=900)).allowed

    clock.now += 890
    assert (await limiter.hit("api:1.2.3.4", limit=3, period=900)).allowed


@pytest.mark.asyncio
async def test_memory_limiter_reset():
    limiter = MemoryRateLimiter(clock=TickingClock())
    await limiter.hit("login:1.1.1.1", limit=1, period=60)
    assert not (await limiter.hit("login:1.1.1.1", limit=1, period=60)).allowed

    await limiter.reset()
    assert (await limiter.hit("login:1.1.1.1", limit=1, period=60)).allowed


def test_build_rate_limiter_selects_storage(tmp_path):
    assert isinstance(build_rate_limiter(make_settings(tmp_path)), MemoryRateLimiter)
    assert isinstance(
        build_rate_limiter(make_settings(tmp_path, rate_limit_storage="redis")),
        RedisRateLimiter,
    )


@pytest.fixture
def limited_client(tmp_path):
    settings = make_settings(
        tmp_path,
        rate_limit_enabled=True,
        rate_limit_requests=3,
        login_rate_limit_requests=2,
    )
    with TestClient(create_app(settings)) as client:
        yield client


def test_api_requests_limited_per_ip(limited_client):
    for _ in range(3):
        response = limited_client.get("/api/cookies/preferences/visitor-0123456789")
        assert response.status_code == 200
        assert "X-RateLimit-Remaining" in response.headers

    blocked = limited_client.get("/api/cookies/preferences/visitor-0123456789")
    assert blocked.status_code == 429
    assert blocked.json()["code"] == "rate_limited"
    assert int(blocked.headers["Retry-After"]) > 0

    # a client-supplied forwarding header does not open a new window
    spoofed = limited_client.get(
        "/api/cookies/preferences/visitor-0123456789",
        headers={"X-Forwarded-For": "203.0.113.7"},
    )
    assert spoofed.status_code == 429


def test_health_is_exempt(limited_client):
    for _ in range(5):
        assert limited_client.get("/api/health/live").status_code == 200


def test_login_has_stricter_limit(limited_client):
    payload = {"username": "admin", "password": "wrong-password"}
    assert limited_client.post("/api/auth/login", json=payload).status_code == 401
    assert limited_client.post("/api/auth/login", json=payload).status_code == 401

    blocked = limited_client.post("/api/auth/login", json=payload)
    assert blocked.status_code == 429
    assert "login" in blocked.json()["error"].lower()


def test_rotating_forwarded_for_does_not_bypass_login_limit(limited_client):
    payload = {"username": "admin", "password": "wrong-password"}
    statuses = [
        limited_client.post(
            "/api/auth/login",
            json=payload,
            headers={"X-Forwarded-For": f"198.51.100.{attempt}"},
        ).status_code
        for attempt in range(5)
    ]
    assert statuses[:2] == [401, 401]
    assert set(statuses[2:]) == {429}


def make_request(forwarded_for=None, peer="10.0.0.5"):
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": (peer, 4321)})


def test_client_ip_counts_trusted_hops_from_the_right():
    request = make_request("6.6.6.6, 203.0.113.9, 10.1.1.1")
    assert client_ip(request) == "10.0.0.5"
    assert client_ip(request, trusted_hops=1) == "10.1.1.1"
    assert client_ip(request, trusted_hops=2) == "203.0.113.9"
    assert client_ip(request, trusted_hops=5) == "6.6.6.6"
    assert client_ip(make_request(), trusted_hops=1) == "10.0.0.5"


def test_reported_client_ip_keeps_first_hop():
    assert reported_client_ip(make_request("6.6.6.6, 10.1.1.1")) == "6.6.6.6"
    assert reported_client_ip(make_request()) == "10.0.0.5"


@pytest.fixture
def proxied_client(tmp_path):
    settings = make_settings(
        tmp_path,
        rate_limit_enabled=True,
        rate_limit_requests=2,
        trusted_proxy_hops=1,
    )
    with TestClient(create_app(settings)) as client:
        yield client


def test_trusted_proxy_hop_keys_the_limit(proxied_client):
    path = "/api/cookies/preferences/visitor-0123456789"
    for spoofed in ("1.1.1.1", "2.2.2.2"):
        response = proxied_client.get(path, headers={"X-Forwarded-For": f"{spoofed}, 203.0.113.7"})
        assert response.status_code == 200

    blocked = proxied_client.get(path, headers={"X-Forwarded-For": "3.3.3.3, 203.0.113.7"})
    assert blocked.status_code == 429

    other = proxied_client.get(path, headers={"X-Forwarded-For": "203.0.113.8"})
    assert other.status_code == 200
