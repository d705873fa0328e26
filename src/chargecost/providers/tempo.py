"""EDF Tempo price provider.

Fetches the Tempo day colours (blue/white/red) covering a range and turns
them into peak and off-peak price intervals using the configured price table.
"""

import logging
import os
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import httpx

from ..models import PriceInterval, TempoDay
from ..ratelimit import RateLimiter
from ..tariffs import TEMPO_TIMEZONE, build_tempo_schedule

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.api-couleur-tempo.fr/api/joursTempo"


def get_base_url() -> str:
    """Get the Tempo calendar API URL from environment."""
    return os.environ.get("TEMPO_BASE_URL", DEFAULT_BASE_URL)


class TempoProvider:
    """Peak/off-peak prices following the Tempo colour calendar."""

    rate_limit_defaults = None

    def __init__(
        self,
        limiter: RateLimiter,
        prices: dict[tuple[int, int], float],
        base_url: str | None = None,
        timezone_name: str = TEMPO_TIMEZONE,
        client: httpx.Client | None = None,
    ) -> None:
        self.limiter = limiter
        self.prices = prices
        self.base_url = base_url or get_base_url()
        self.tz = ZoneInfo(timezone_name)
        self.client = client or httpx.Client(timeout=30.0)

    def fetch_days(self, first: date, last: date) -> list[TempoDay]:
        """Fetch the colour of every local day from first to last inclusive."""
        params = []
        day = first
        while day <= last:
            params.append(("dateJour[]", day.isoformat()))
            day += timedelta(days=1)

        self.limiter.record_call()
        response = self.client.get(self.base_url, params=params)
        response.raise_for_status()
        data = response.json()

        if not data:
            raise ValueError("Failed to retrieve Tempo calendar, empty response")

        days = [TempoDay(date=date.fromisoformat(d["dateJour"]), code=int(d["codeJour"])) for d in data]
        for d in days:
            logger.debug("Tempo day %s: colour %s", d.date, d.code)
        return sorted(days, key=lambda d: d.date)

    def fetch_prices(self, start: datetime, end: datetime) -> list[PriceInterval]:
        local_start = start.astimezone(self.tz)
        local_end = end.astimezone(self.tz)
        logger.debug("Tempo range %s -> %s", local_start, local_end)

        # The previous day's colour prices the early hours of the first day
        days = self.fetch_days(local_start.date() - timedelta(days=1), local_end.date())
        return build_tempo_schedule(days, self.prices, start, end, self.tz)
