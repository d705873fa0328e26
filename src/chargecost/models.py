"""Data models for charging telemetry, prices and provider sessions."""

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class Sample:
    """A single charging telemetry record."""

    date: datetime
    charge_energy_added: float
    charger_power: float  # kW
    charger_phases: int | None = None
    charger_actual_current: float | None = None  # A
    charger_voltage: float | None = None  # V


@dataclass(frozen=True, order=True)
class PriceInterval:
    """A unit price valid over [valid_from, valid_to)."""

    valid_from: datetime
    valid_to: datetime
    value: float  # currency per kWh


@dataclass(frozen=True)
class ProviderSession:
    """A session billed as a whole by a charging provider."""

    start_time: datetime
    end_time: datetime
    cost: float
    energy_kwh: float | None = None


@dataclass
class ChargingSession:
    """A finished charging process and its telemetry."""

    id: int
    geofence_id: int
    start_date: datetime
    end_date: datetime | None
    samples: list[Sample] = field(default_factory=list)
    charge_energy_used: float | None = None
    cost: float | None = None


@dataclass
class Geofence:
    """A location charging sessions are grouped by."""

    id: int
    name: str
    cost_per_unit: float | None = None


@dataclass(frozen=True)
class TempoDay:
    """A Tempo calendar day and its colour code (1 blue, 2 white, 3 red)."""

    date: date
    code: int


@dataclass(frozen=True)
class RateLimitDefaults:
    """Request limits a provider advertises for itself."""

    max_requests: int
    period_seconds: int


@dataclass
class AllocationResult:
    """Cost and energy of a session allocated across price intervals."""

    cost: float
    energy: float
    breakdown: list[tuple[PriceInterval, float, float]] = field(default_factory=list)
