"""Fixed time-of-use price provider.

Prices come from the rates configured in tariffs.yaml, no API involved.
"""

from datetime import datetime

from ..models import PriceInterval
from ..tariffs import TariffRate, expand_fixed_rates


class FixedPriceProvider:
    """Daily time-of-use rates, e.g. a cheap overnight window."""

    rate_limit_defaults = None

    def __init__(self, rates: list[TariffRate], timezone_name: str = "UTC") -> None:
        if not rates:
            raise ValueError("No fixed_price rates configured in tariffs.yaml")
        self.rates = rates
        self.timezone_name = timezone_name

    def fetch_prices(self, start: datetime, end: datetime) -> list[PriceInterval]:
        return expand_fixed_rates(self.rates, start, end, self.timezone_name)
