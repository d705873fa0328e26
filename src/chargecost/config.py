"""Settings loaded from environment variables (and a .env file)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .tariffs import DEFAULT_CONFIG_PATH

PROVIDERS = ("octopus", "tempo", "fixed", "monta")


@dataclass
class Settings:
    """Reconciliation settings."""

    geofence_id: int
    provider: str = "octopus"
    lookback_days: int | None = None
    phases: float | None = None  # overrides inferred phases when set
    fee_per_kwh: float = 0.0
    matching_start_tolerance_minutes: float = 30
    matching_end_tolerance_minutes: float = 120
    matching_energy_tolerance_ratio: float = 0.1
    rate_limit_max_requests: int = 0
    rate_limit_period_seconds: int = 0
    tariffs_path: Path = DEFAULT_CONFIG_PATH


def _get(name: str, cast, default=None):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ValueError(f"{name} environment variable has an invalid value: {value!r}")


def get_geofence_id() -> int:
    """Get the geofence to reconcile from environment."""
    geofence_id = _get("GEOFENCE_ID", int)
    if geofence_id is None:
        raise ValueError(
            "GEOFENCE_ID environment variable not set.\n"
            "Use 'chargecost database stats' or your charging logger to find the id of your home geofence.\n"
            "Then set it: export GEOFENCE_ID=1"
        )
    return geofence_id


def load_settings() -> Settings:
    """Build settings from the environment."""
    load_dotenv()

    provider = _get("PROVIDER", str, "octopus").lower()
    if provider not in PROVIDERS:
        raise ValueError(f"PROVIDER must be one of {', '.join(PROVIDERS)}, got '{provider}'")

    return Settings(
        geofence_id=get_geofence_id(),
        provider=provider,
        lookback_days=_get("LOOKBACK_DAYS", int),
        phases=_get("PHASES", float),
        fee_per_kwh=_get("FEE_PER_KWH", float, 0.0),
        matching_start_tolerance_minutes=_get("MATCHING_START_TOLERANCE_MINUTES", float, 30),
        matching_end_tolerance_minutes=_get("MATCHING_END_TOLERANCE_MINUTES", float, 120),
        matching_energy_tolerance_ratio=_get("MATCHING_ENERGY_TOLERANCE_RATIO", float, 0.1),
        rate_limit_max_requests=_get("RATE_LIMIT_MAX_REQUESTS", int, 0),
        rate_limit_period_seconds=_get("RATE_LIMIT_PERIOD_SECONDS", int, 0),
        tariffs_path=_get("TARIFFS_PATH", Path, DEFAULT_CONFIG_PATH),
    )
