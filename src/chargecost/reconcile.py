"""Reconcile finished charging sessions against provider prices."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from .analysis.allocation import allocate_cost
from .analysis.energy import calculate_energy_used, determine_phases
from .analysis.matching import locate_best_match
from .config import Settings
from .errors import NoAppropriateMatch, RateLimitExceeded, UndeterminedPhases
from .models import (
    ChargingSession,
    Geofence,
    PriceInterval,
    ProviderSession,
    RateLimitDefaults,
    Sample,
)
from .ratelimit import RateLimiter
from .tariffs import load_tariff_config

logger = logging.getLogger(__name__)


class VariantPriceProvider(Protocol):
    rate_limit_defaults: RateLimitDefaults | None

    def fetch_prices(self, start: datetime, end: datetime) -> list[PriceInterval]: ...


class WholeSessionProvider(Protocol):
    rate_limit_defaults: RateLimitDefaults | None

    def fetch_sessions(self, start: datetime, end: datetime) -> list[ProviderSession]: ...


class SessionStore(Protocol):
    def get_geofence(self, geofence_id: int) -> Geofence | None: ...

    def list_pending_sessions(
        self, geofence_id: int, lookback_days: int | None = None
    ) -> list[ChargingSession]: ...

    def commit_result(self, session: ChargingSession, cost: float, energy: float) -> bool: ...


@dataclass(frozen=True)
class DynamicPriceSource:
    """Prices that vary over time, allocated sample by sample."""

    provider: VariantPriceProvider


@dataclass(frozen=True)
class WholeSessionSource:
    """Sessions billed as a whole, matched to our session."""

    provider: WholeSessionProvider


PriceSource = DynamicPriceSource | WholeSessionSource


def build_price_source(settings: Settings, limiter: RateLimiter) -> PriceSource:
    """Create the configured provider and apply its rate limit defaults."""
    if settings.provider == "octopus":
        from .providers.octopus import OctopusProvider

        source = DynamicPriceSource(OctopusProvider(limiter))
    elif settings.provider == "tempo":
        from .providers.tempo import TempoProvider

        tariffs = load_tariff_config(settings.tariffs_path)
        source = DynamicPriceSource(
            TempoProvider(limiter, tariffs.tempo_prices, timezone_name=tariffs.tempo_timezone)
        )
    elif settings.provider == "fixed":
        from .providers.fixed_price import FixedPriceProvider

        tariffs = load_tariff_config(settings.tariffs_path)
        source = DynamicPriceSource(FixedPriceProvider(tariffs.fixed_rates, tariffs.fixed_timezone))
    elif settings.provider == "monta":
        from .providers.monta import MontaProvider

        source = WholeSessionSource(MontaProvider(limiter))
    else:
        raise ValueError(f"Unknown price provider '{settings.provider}'")

    limiter.configure_defaults(source.provider.rate_limit_defaults)
    return source


class Reconciler:
    """Compute and record the cost of every pending session in a geofence."""

    def __init__(
        self,
        store: SessionStore,
        source: PriceSource,
        limiter: RateLimiter,
        settings: Settings,
    ) -> None:
        self.store = store
        self.source = source
        self.limiter = limiter
        self.settings = settings

    def run(self) -> dict:
        """Reconcile pending sessions one after another.

        Stops early, keeping results already recorded, once the rate limit
        is reached. Any other failure only skips the session it occurred in.

        Returns dict with 'updated' and 'failed' counts and 'stopped_early'.
        """
        result = {"updated": 0, "failed": 0, "stopped_early": False}
        geofence_id = self.settings.geofence_id

        geofence = self.store.get_geofence(geofence_id)
        if geofence is None:
            logger.warning(
                "Configured geofence id %s does not exist, make sure you have entered the correct id",
                geofence_id,
            )
            return result
        if geofence.cost_per_unit is not None:
            logger.warning(
                "Configured geofence '%s' (id: %s) should not have a cost set as it may override "
                "the calculated cost",
                geofence.name,
                geofence.id,
            )
            return result

        lookback_days = self.settings.lookback_days
        if lookback_days is not None:
            logger.info(
                "Looking for finished charging processes with no cost set started less than "
                "%s day(s) ago in the '%s' geofence (id: %s)",
                lookback_days,
                geofence.name,
                geofence.id,
            )
        else:
            logger.info(
                "Looking for finished charging processes with no cost set in the '%s' geofence (id: %s)",
                geofence.name,
                geofence.id,
            )

        sessions = self.store.list_pending_sessions(geofence_id, lookback_days)
        if not sessions:
            logger.info("No new charging processes")
            return result

        for session in sessions:
            if self.limiter.is_limit_reached():
                logger.warning(
                    "Rate limit reached, stopping price calculations for this run, resets at: %s",
                    self._next_reset(),
                )
                result["stopped_early"] = True
                break

            try:
                if not session.samples:
                    logger.error("Could not find charges on charging process %s", session.id)
                    result["failed"] += 1
                    continue

                cost, energy = self.calculate_session_cost(session.samples)
                logger.info(
                    "Calculated cost %s and energy %s kWh for charging process %s",
                    cost,
                    energy,
                    session.id,
                )
                if session.charge_energy_used is not None and session.charge_energy_used != energy:
                    logger.warning(
                        "Mismatch between recorded energy used of %s and ours of %s",
                        session.charge_energy_used,
                        energy,
                    )
                if self.store.commit_result(session, cost, energy):
                    result["updated"] += 1
            except RateLimitExceeded:
                logger.warning(
                    "Rate limit reached during price calculation, stopping further price "
                    "calculations for this run, resets at: %s",
                    self._next_reset(),
                )
                result["stopped_early"] = True
                break
            except Exception:
                logger.exception(
                    "Failed to calculate charging cost / energy for charging process %s", session.id
                )
                result["failed"] += 1

        return result

    def _next_reset(self):
        return self.limiter.next_reset_time() if self.limiter.enabled else "unknown"

    def resolve_phases(self, samples: list[Sample]) -> float:
        if self.settings.phases is not None:
            return self.settings.phases
        phases = determine_phases(samples)
        if phases is None:
            raise UndeterminedPhases("Unable to determine phases for charges")
        return phases

    def calculate_session_cost(self, samples: list[Sample]) -> tuple[float, float]:
        """Return (cost, energy) of a session, both rounded to 2 decimal places.

        A session whose phases cannot be determined costs nothing.
        """
        start = min(s.date for s in samples)
        end = max(s.date for s in samples)
        logger.info("Calculating cost for charges %s UTC - %s UTC", start, end)

        try:
            if isinstance(self.source, DynamicPriceSource):
                return self._dynamic_cost(samples, start, end)
            if isinstance(self.source, WholeSessionSource):
                return self._whole_session_cost(samples, start, end)
        except UndeterminedPhases as e:
            logger.warning("%s", e)
            return 0.0, 0.0

        raise TypeError(f"Unknown price source {self.source!r}")

    def _dynamic_cost(
        self, samples: list[Sample], start: datetime, end: datetime
    ) -> tuple[float, float]:
        prices = self.source.provider.fetch_prices(start, end)
        phases = self.resolve_phases(samples)
        allocation = allocate_cost(samples, prices, phases, self.settings.fee_per_kwh)
        return allocation.cost, allocation.energy

    def _whole_session_cost(
        self, samples: list[Sample], start: datetime, end: datetime
    ) -> tuple[float, float]:
        search_start = start - timedelta(minutes=self.settings.matching_start_tolerance_minutes)
        search_end = end + timedelta(minutes=self.settings.matching_end_tolerance_minutes)
        logger.debug("Searching for charges between %s UTC and %s UTC", search_start, search_end)

        candidates = self.source.provider.fetch_sessions(search_start, search_end)
        if not candidates:
            raise NoAppropriateMatch(
                f"No possible charges found between {search_start} and {search_end}"
            )
        logger.debug("Retrieved %d possible charges:", len(candidates))
        for c in candidates:
            logger.debug("%s UTC - %s UTC: %s", c.start_time, c.end_time, c.cost)

        phases = self.resolve_phases(samples)
        energy = calculate_energy_used(samples, phases)
        best = locate_best_match(
            candidates,
            energy,
            start,
            end,
            self.settings.matching_start_tolerance_minutes,
            self.settings.matching_end_tolerance_minutes,
            self.settings.matching_energy_tolerance_ratio,
        )
        return round(best.cost, 2), round(energy, 2)
