"""Tests for settings loaded from the environment."""

from pathlib import Path

import pytest
from chargecost import config

ENV_VARS = [
    "GEOFENCE_ID",
    "PROVIDER",
    "LOOKBACK_DAYS",
    "PHASES",
    "FEE_PER_KWH",
    "MATCHING_START_TOLERANCE_MINUTES",
    "MATCHING_END_TOLERANCE_MINUTES",
    "MATCHING_ENERGY_TOLERANCE_RATIO",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_PERIOD_SECONDS",
    "TARIFFS_PATH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.setattr(config, "load_dotenv", lambda: None)


def test_defaults(monkeypatch):
    monkeypatch.setenv("GEOFENCE_ID", "1")

    settings = config.load_settings()

    assert settings.geofence_id == 1
    assert settings.provider == "octopus"
    assert settings.lookback_days is None
    assert settings.phases is None
    assert settings.fee_per_kwh == 0.0
    assert settings.matching_start_tolerance_minutes == 30
    assert settings.matching_end_tolerance_minutes == 120
    assert settings.matching_energy_tolerance_ratio == 0.1
    assert settings.rate_limit_max_requests == 0
    assert settings.rate_limit_period_seconds == 0


def test_overrides(monkeypatch):
    monkeypatch.setenv("GEOFENCE_ID", "3")
    monkeypatch.setenv("PROVIDER", "Tempo")
    monkeypatch.setenv("LOOKBACK_DAYS", "14")
    monkeypatch.setenv("PHASES", "1.732")
    monkeypatch.setenv("FEE_PER_KWH", "0.02")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "5")
    monkeypatch.setenv("RATE_LIMIT_PERIOD_SECONDS", "60")
    monkeypatch.setenv("TARIFFS_PATH", "/etc/chargecost/tariffs.yaml")

    settings = config.load_settings()

    assert settings.geofence_id == 3
    assert settings.provider == "tempo"
    assert settings.lookback_days == 14
    assert settings.phases == 1.732
    assert settings.fee_per_kwh == 0.02
    assert settings.rate_limit_max_requests == 5
    assert settings.rate_limit_period_seconds == 60
    assert settings.tariffs_path == Path("/etc/chargecost/tariffs.yaml")


def test_blank_value_uses_default(monkeypatch):
    monkeypatch.setenv("GEOFENCE_ID", "1")
    monkeypatch.setenv("LOOKBACK_DAYS", "")

    assert config.load_settings().lookback_days is None


def test_missing_geofence():
    with pytest.raises(ValueError, match="GEOFENCE_ID environment variable not set"):
        config.load_settings()


def test_invalid_number(monkeypatch):
    monkeypatch.setenv("GEOFENCE_ID", "home")

    with pytest.raises(ValueError, match="GEOFENCE_ID environment variable has an invalid value"):
        config.load_settings()


def test_unknown_provider(monkeypatch):
    monkeypatch.setenv("GEOFENCE_ID", "1")
    monkeypatch.setenv("PROVIDER", "acme")

    with pytest.raises(ValueError, match="PROVIDER must be one of"):
        config.load_settings()
