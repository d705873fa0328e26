"""Octopus Energy Agile price provider.

Fetches half-hourly unit rates from the Octopus public REST API.
Results are paginated; each page is a separate request.
"""

import logging
import os
import time
from datetime import datetime, timezone

import httpx

from ..models import PriceInterval
from ..ratelimit import RateLimiter

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.octopus.energy/v1/"
PAGE_DELAY_SECONDS = 5.0  # seconds between page requests


def get_tariff_options() -> tuple[str, str, str]:
    """Get Octopus product, tariff and region codes from environment."""
    product = os.environ.get("OCTOPUS_PRODUCT_CODE")
    tariff = os.environ.get("OCTOPUS_TARIFF_CODE")
    region = os.environ.get("OCTOPUS_REGION_CODE")
    if not (product and tariff and region):
        raise ValueError(
            "OCTOPUS_PRODUCT_CODE, OCTOPUS_TARIFF_CODE and OCTOPUS_REGION_CODE must be set.\n"
            "Example: export OCTOPUS_PRODUCT_CODE='AGILE-FLEX-22-11-25' "
            "OCTOPUS_TARIFF_CODE='E-1R-AGILE-FLEX-22-11-25' OCTOPUS_REGION_CODE='A'"
        )
    return product, tariff, region


def _utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class OctopusProvider:
    """Variable unit rates for an Octopus tariff."""

    rate_limit_defaults = None

    def __init__(
        self,
        limiter: RateLimiter,
        product_code: str | None = None,
        tariff_code: str | None = None,
        region_code: str | None = None,
        client: httpx.Client | None = None,
        page_delay: float = PAGE_DELAY_SECONDS,
    ) -> None:
        if product_code is None or tariff_code is None or region_code is None:
            product_code, tariff_code, region_code = get_tariff_options()
        self.limiter = limiter
        self.product_code = product_code
        self.tariff_code = tariff_code
        self.region_code = region_code
        self.client = client or httpx.Client(base_url=API_BASE_URL, timeout=30.0)
        self.page_delay = page_delay

    def fetch_prices(self, start: datetime, end: datetime) -> list[PriceInterval]:
        url = (
            f"products/{self.product_code}/electricity-tariffs/"
            f"{self.tariff_code}-{self.region_code}/standard-unit-rates"
        )
        params = {"period_from": _utc(start), "period_to": _utc(end)}

        results = []
        while True:
            self.limiter.record_call()
            response = self.client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
            results.extend(data.get("results", []))

            url = data.get("next")
            if not url:
                break
            # The next link already carries the query string
            params = None
            logger.debug("Fetching next page of Octopus prices: %s", url)
            time.sleep(self.page_delay)

        return [
            PriceInterval(
                valid_from=datetime.fromisoformat(r["valid_from"].replace("Z", "+00:00")),
                valid_to=datetime.fromisoformat(r["valid_to"].replace("Z", "+00:00")),
                value=r["value_inc_vat"] / 100,
            )
            for r in results
        ]
