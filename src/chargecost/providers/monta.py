"""Monta charging provider.

Monta bills each charge as a whole, so instead of prices this provider
returns the completed charges around a session for matching.
"""

import os
from datetime import datetime, timedelta, timezone

import httpx

from ..models import ProviderSession, RateLimitDefaults
from ..ratelimit import RateLimiter

API_BASE_URL = "https://public-api.monta.com/api/v1"

# Hours added either side of the requested window
FETCH_HOURS_BEFORE = 24
FETCH_HOURS_AFTER = 24


def get_credentials() -> tuple[str, str]:
    """Get Monta API client credentials from environment."""
    client_id = os.environ.get("MONTA_CLIENT_ID")
    client_secret = os.environ.get("MONTA_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise ValueError(
            "MONTA_CLIENT_ID and MONTA_CLIENT_SECRET environment variables not set.\n"
            "Create API credentials in the Monta portal, then set them:\n"
            "export MONTA_CLIENT_ID='...' MONTA_CLIENT_SECRET='...'"
        )
    return client_id, client_secret


def get_charge_point_id() -> int | None:
    """Get the optional Monta charge point filter from environment."""
    value = os.environ.get("MONTA_CHARGE_POINT_ID")
    return int(value) if value else None


def _utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class MontaProvider:
    """Completed charges billed by Monta."""

    rate_limit_defaults = RateLimitDefaults(max_requests=10, period_seconds=60)

    def __init__(
        self,
        limiter: RateLimiter,
        client_id: str | None = None,
        client_secret: str | None = None,
        charge_point_id: int | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if client_id is None or client_secret is None:
            client_id, client_secret = get_credentials()
            charge_point_id = charge_point_id or get_charge_point_id()
        self.limiter = limiter
        self.client_id = client_id
        self.client_secret = client_secret
        self.charge_point_id = charge_point_id
        self.client = client or httpx.Client(timeout=30.0)

    def get_access_token(self) -> str:
        self.limiter.record_call()
        response = self.client.post(
            f"{API_BASE_URL}/auth/token",
            json={"clientId": self.client_id, "clientSecret": self.client_secret},
        )
        response.raise_for_status()
        return response.json()["accessToken"]

    def fetch_sessions(self, start: datetime, end: datetime) -> list[ProviderSession]:
        token = self.get_access_token()

        params = {
            "state": "completed",
            "fromDate": _utc(start - timedelta(hours=FETCH_HOURS_BEFORE)),
            "toDate": _utc(end + timedelta(hours=FETCH_HOURS_AFTER)),
        }
        if self.charge_point_id is not None:
            params["chargePointId"] = str(self.charge_point_id)

        self.limiter.record_call()
        response = self.client.get(
            f"{API_BASE_URL}/charges",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()

        return [
            ProviderSession(
                start_time=_parse(c["startedAt"]),
                end_time=_parse(c["stoppedAt"]),
                cost=float(c["cost"]),
                energy_kwh=float(c["consumedKwh"]) if c.get("consumedKwh") is not None else None,
            )
            for c in response.json().get("data", [])
        ]
