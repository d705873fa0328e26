"""Tests for the Monta charging provider."""

import json
from datetime import datetime, timezone

import httpx
import pytest
from chargecost.errors import RateLimitExceeded
from chargecost.models import ProviderSession
from chargecost.providers import monta
from chargecost.ratelimit import RateLimiter

START = datetime(2025, 1, 15, 0, 0, tzinfo=timezone.utc)
END = datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc)


def monta_handler(requests, charges):
    def handler(request):
        requests.append(request)
        if request.url.path.endswith("/auth/token"):
            return httpx.Response(200, json={"accessToken": "token-123", "refreshToken": "r"})
        return httpx.Response(200, json={"data": charges})

    return handler


def make_provider(handler, limiter=None, charge_point_id=None):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return monta.MontaProvider(
        limiter or RateLimiter(),
        client_id="id",
        client_secret="secret",
        charge_point_id=charge_point_id,
        client=client,
    )


def test_fetch_sessions():
    requests = []
    charges = [
        {
            "id": 1,
            "startedAt": "2025-01-15T00:05:00Z",
            "stoppedAt": "2025-01-15T02:55:00Z",
            "cost": 7.5,
            "consumedKwh": 30.2,
        },
        {
            "id": 2,
            "startedAt": "2025-01-14T18:00:00Z",
            "stoppedAt": "2025-01-14T19:00:00Z",
            "cost": 2,
            "consumedKwh": None,
        },
    ]
    limiter = RateLimiter(10, 60)
    sessions = make_provider(monta_handler(requests, charges), limiter).fetch_sessions(START, END)

    assert sessions == [
        ProviderSession(
            datetime(2025, 1, 15, 0, 5, tzinfo=timezone.utc),
            datetime(2025, 1, 15, 2, 55, tzinfo=timezone.utc),
            7.5,
            30.2,
        ),
        ProviderSession(
            datetime(2025, 1, 14, 18, 0, tzinfo=timezone.utc),
            datetime(2025, 1, 14, 19, 0, tzinfo=timezone.utc),
            2.0,
            None,
        ),
    ]

    token_request, charges_request = requests
    assert token_request.method == "POST"
    assert json.loads(token_request.content) == {"clientId": "id", "clientSecret": "secret"}
    assert charges_request.headers["Authorization"] == "Bearer token-123"
    assert charges_request.url.params["state"] == "completed"
    assert charges_request.url.params["fromDate"] == "2025-01-14T00:00:00Z"
    assert charges_request.url.params["toDate"] == "2025-01-16T03:00:00Z"
    assert "chargePointId" not in charges_request.url.params
    assert limiter.count == 2


def test_fetch_sessions_for_charge_point():
    requests = []
    make_provider(monta_handler(requests, []), charge_point_id=42).fetch_sessions(START, END)

    assert requests[1].url.params["chargePointId"] == "42"


def test_rate_limited_after_token():
    requests = []
    limiter = RateLimiter(1, 60)

    with pytest.raises(RateLimitExceeded):
        make_provider(monta_handler(requests, []), limiter).fetch_sessions(START, END)
    assert len(requests) == 1


def test_auth_failure():
    def handler(request):
        return httpx.Response(401, json={"message": "Unauthorized"})

    with pytest.raises(httpx.HTTPStatusError):
        make_provider(handler).fetch_sessions(START, END)


def test_missing_credentials(monkeypatch):
    monkeypatch.delenv("MONTA_CLIENT_ID", raising=False)
    monkeypatch.delenv("MONTA_CLIENT_SECRET", raising=False)

    with pytest.raises(ValueError, match="MONTA_CLIENT_ID"):
        monta.MontaProvider(RateLimiter())


def test_charge_point_from_environment(monkeypatch):
    monkeypatch.setenv("MONTA_CLIENT_ID", "id")
    monkeypatch.setenv("MONTA_CLIENT_SECRET", "secret")
    monkeypatch.setenv("MONTA_CHARGE_POINT_ID", "7")

    provider = monta.MontaProvider(RateLimiter())

    assert provider.charge_point_id == 7
    assert monta.MontaProvider.rate_limit_defaults.max_requests == 10
