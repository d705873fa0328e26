"""Match a charging session to a session billed by the charging provider."""

import logging
from datetime import datetime

from ..errors import NoAppropriateMatch
from ..models import ProviderSession

logger = logging.getLogger(__name__)


def _minutes_between(a: datetime, b: datetime) -> float:
    return abs((a - b).total_seconds()) / 60


def locate_best_match(
    candidates: list[ProviderSession],
    energy_used: float,
    start: datetime,
    end: datetime,
    start_tolerance_minutes: float,
    end_tolerance_minutes: float,
    energy_tolerance_ratio: float,
) -> ProviderSession:
    """Pick the provider session that best corresponds to a charging session.

    When any candidate reports energy and the session used energy, candidates
    must start within the start tolerance and report energy within the
    tolerance ratio. Otherwise they must start and end within the start and
    end tolerances. Of the qualifying candidates the one starting closest to
    the session wins; ties go to the earliest in the input.
    """
    with_energy = [c for c in candidates if c.energy_kwh is not None]

    if with_energy and energy_used > 0:
        logger.debug(
            "Energy data found in %d possible charge(s), using energy and start time matching "
            "of %s minutes from %s and %s ratio of %skWh energy used",
            len(with_energy),
            start_tolerance_minutes,
            start,
            energy_tolerance_ratio,
            energy_used,
        )
        matches = [
            c
            for c in with_energy
            if _minutes_between(c.start_time, start) <= start_tolerance_minutes
            and abs((c.energy_kwh - energy_used) / energy_used) <= energy_tolerance_ratio
        ]
        if not matches:
            raise NoAppropriateMatch(
                f"No appropriate charge found (of {len(with_energy)} evaluated) within the tolerance "
                f"range of {start_tolerance_minutes} minutes of {start} and {energy_tolerance_ratio} "
                f"ratio of {energy_used}kWh energy used"
            )
    else:
        reason = (
            "energy data available but energy used was 0kWh"
            if with_energy
            else "no energy data available"
        )
        logger.debug(
            "Using start and end time matching (%s) of %s minutes from %s and %s minutes from %s",
            reason,
            start_tolerance_minutes,
            start,
            end_tolerance_minutes,
            end,
        )
        matches = [
            c
            for c in candidates
            if _minutes_between(c.start_time, start) <= start_tolerance_minutes
            and _minutes_between(c.end_time, end) <= end_tolerance_minutes
        ]
        if not matches:
            raise NoAppropriateMatch(
                f"No appropriate charge found (of {len(candidates)} evaluated) within the tolerance "
                f"range of {start_tolerance_minutes} minutes before {start} and "
                f"{end_tolerance_minutes} minutes after {end}"
            )

    # min() keeps the first of equally close candidates
    best = min(matches, key=lambda c: _minutes_between(c.start_time, start))

    if best.energy_kwh is not None:
        logger.info(
            "Found %d appropriate charge(s), using the most appropriate charge from %s UTC - %s UTC "
            "with a cost of %s and energy of %skWh",
            len(matches),
            best.start_time,
            best.end_time,
            best.cost,
            best.energy_kwh,
        )
    else:
        logger.info(
            "Found %d appropriate charge(s), using the most appropriate charge from %s UTC - %s UTC "
            "with a cost of %s",
            len(matches),
            best.start_time,
            best.end_time,
            best.cost,
        )

    return best
