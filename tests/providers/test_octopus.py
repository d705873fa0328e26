"""Tests for the Octopus price provider."""

import json
from datetime import datetime, timezone

import httpx
import pytest
from chargecost.errors import RateLimitExceeded
from chargecost.providers import octopus
from chargecost.ratelimit import RateLimiter

START = datetime(2025, 1, 15, 0, 0, tzinfo=timezone.utc)
END = datetime(2025, 1, 15, 1, 0, tzinfo=timezone.utc)

RATES_PATH = "/v1/products/AGILE-24-10-01/electricity-tariffs/E-1R-AGILE-24-10-01-C/standard-unit-rates"


def make_provider(handler, limiter=None):
    client = httpx.Client(base_url=octopus.API_BASE_URL, transport=httpx.MockTransport(handler))
    return octopus.OctopusProvider(
        limiter or RateLimiter(),
        product_code="AGILE-24-10-01",
        tariff_code="E-1R-AGILE-24-10-01",
        region_code="C",
        client=client,
        page_delay=0,
    )


def rate(valid_from, valid_to, pence):
    return {"value_exc_vat": pence / 1.05, "value_inc_vat": pence, "valid_from": valid_from, "valid_to": valid_to}


def test_fetch_prices():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "count": 2,
                "next": None,
                "results": [
                    rate("2025-01-15T00:30:00Z", "2025-01-15T01:00:00Z", 25.2),
                    rate("2025-01-15T00:00:00Z", "2025-01-15T00:30:00Z", 12.6),
                ],
            },
        )

    prices = make_provider(handler).fetch_prices(START, END)

    assert len(requests) == 1
    assert requests[0].url.path == RATES_PATH
    assert requests[0].url.params["period_from"] == "2025-01-15T00:00:00Z"
    assert requests[0].url.params["period_to"] == "2025-01-15T01:00:00Z"
    assert prices[1].valid_from == START
    assert prices[1].valid_to == datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc)
    assert prices[1].value == pytest.approx(0.126)
    assert prices[0].value == pytest.approx(0.252)


def test_fetch_prices_follows_pages():
    next_url = f"https://api.octopus.energy{RATES_PATH}?page=2&period_from=2025-01-15T00%3A00%3A00Z"
    pages = {
        None: {"next": next_url, "results": [rate("2025-01-15T00:00:00Z", "2025-01-15T00:30:00Z", 10)]},
        "2": {"next": None, "results": [rate("2025-01-15T00:30:00Z", "2025-01-15T01:00:00Z", 20)]},
    }

    def handler(request):
        return httpx.Response(200, json=pages[request.url.params.get("page")])

    limiter = RateLimiter(5, 60)
    prices = make_provider(handler, limiter).fetch_prices(START, END)

    assert [p.value for p in prices] == [0.1, 0.2]
    assert limiter.count == 2


def test_fetch_prices_rate_limited_before_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"next": None, "results": []})

    limiter = RateLimiter(1, 60)
    limiter.record_call()

    with pytest.raises(RateLimitExceeded):
        make_provider(handler, limiter).fetch_prices(START, END)
    assert calls == []


def test_fetch_prices_http_error():
    def handler(request):
        return httpx.Response(404, content=json.dumps({"detail": "Not found."}))

    with pytest.raises(httpx.HTTPStatusError):
        make_provider(handler).fetch_prices(START, END)


def test_missing_tariff_options(monkeypatch):
    for name in ("OCTOPUS_PRODUCT_CODE", "OCTOPUS_TARIFF_CODE", "OCTOPUS_REGION_CODE"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ValueError, match="OCTOPUS_PRODUCT_CODE"):
        octopus.OctopusProvider(RateLimiter())


def test_tariff_options_from_environment(monkeypatch):
    monkeypatch.setenv("OCTOPUS_PRODUCT_CODE", "AGILE-24-10-01")
    monkeypatch.setenv("OCTOPUS_TARIFF_CODE", "E-1R-AGILE-24-10-01")
    monkeypatch.setenv("OCTOPUS_REGION_CODE", "C")

    assert octopus.get_tariff_options() == ("AGILE-24-10-01", "E-1R-AGILE-24-10-01", "C")
