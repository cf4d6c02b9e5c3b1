"""Request admission (rate limit) tests."""

import pytest
from fastapi.testclient import TestClient

from currency_proxy.core.rate_limit import SlidingWindowRateLimiter
from currency_proxy.main import create_app


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_limiter_admits_up_to_max_then_rejects():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(3, 60, clock=clock)

    assert [limiter.hit("a")[0] for _ in range(3)] == [True, True, True]
    admitted, retry_after = limiter.hit("a")
    assert admitted is False
    assert retry_after == pytest.approx(60)
    # other clients have their own window
    assert limiter.hit("b")[0] is True


def test_limiter_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(2, 60, clock=clock)
    limiter.hit("a")
    clock.now += 30
    limiter.hit("a")
    assert limiter.hit("a")[0] is False
    assert limiter.remaining("a") == 0

    clock.now += 30  # first hit leaves the window
    assert limiter.remaining("a") == 1
    assert limiter.hit("a")[0] is True
    assert limiter.hit("a")[0] is False


def test_limiter_forgets_idle_clients():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(5, 60, clock=clock)
    for addr in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        limiter.hit(addr)
    assert limiter.tracked_clients == 3

    clock.now += 61
    limiter.hit("10.0.0.4")

    assert limiter.tracked_clients == 1
    assert limiter.remaining("10.0.0.1") == 5
    assert limiter.tracked_clients == 1


def test_limiter_rejects_bad_configuration():
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(0, 60)
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(1, 0)


def test_middleware_returns_429_before_conversion(settings, credentials, fake_client):
    limited = settings.model_copy(
        update={"rate_limit_enabled": True, "rate_limit_max_requests": 2}
    )
    client = TestClient(
        create_app(limited, credentials=credentials, exchange_client=fake_client)
    )

    ok = [client.post("/convert", json={"source": "USD", "target": "EUR"}) for _ in range(2)]
    blocked = client.post("/convert", json={"source": "USD", "target": "GBP"})

    assert [r.status_code for r in ok] == [200, 200]
    assert ok[0].headers["X-RateLimit-Limit"] == "2"
    assert blocked.status_code == 429
    assert blocked.json() == {"error": "Too many requests, please try again later."}
    assert int(blocked.headers["Retry-After"]) >= 1
    assert fake_client.calls == [("USD", "EUR", None)]


def test_rate_limit_can_be_disabled(settings, credentials, fake_client):
    client = TestClient(
        create_app(settings, credentials=credentials, exchange_client=fake_client)
    )

    statuses = {client.get("/health").status_code for _ in range(150)}

    assert statuses == {200}
