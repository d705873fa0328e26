"""Allocate session energy across time-varying unit prices."""

import logging

from ..errors import IncompleteCoverage
from ..models import AllocationResult, PriceInterval, Sample
from .energy import calculate_energy_used

logger = logging.getLogger(__name__)

MAX_UNATTRIBUTED_LOGGED = 10


def allocate_cost(
    samples: list[Sample],
    prices: list[PriceInterval],
    phases: float,
    fee_per_kwh: float = 0.0,
) -> AllocationResult:
    """Price a session's energy against a stream of price intervals.

    Samples and intervals are both swept forward in time. Each sample is
    attributed to the interval with valid_from <= date < valid_to; the last
    interval also takes samples exactly at its valid_to. Every non-empty
    window is integrated together with the last sample of the previous
    window so the time base stays continuous.

    Raises IncompleteCoverage if any sample falls outside every interval.
    """
    ordered = sorted(samples, key=lambda s: s.date)
    intervals = sorted(prices, key=lambda p: p.valid_from)

    logger.debug("Retrieved %d prices:", len(intervals))
    for price in intervals:
        logger.debug("%s UTC - %s UTC: %s", price.valid_from, price.valid_to, price.value)

    total_cost = 0.0
    total_energy = 0.0
    breakdown = []
    unattributed = []
    last_sample = None
    cursor = 0

    for index, price in enumerate(intervals):
        is_last = index == len(intervals) - 1

        # Anything still before this interval fell into a gap
        while cursor < len(ordered) and ordered[cursor].date < price.valid_from:
            unattributed.append(ordered[cursor])
            cursor += 1

        window = []
        while cursor < len(ordered) and (
            ordered[cursor].date < price.valid_to
            or (is_last and ordered[cursor].date == price.valid_to)
        ):
            window.append(ordered[cursor])
            cursor += 1

        if not window:
            continue

        energy = calculate_energy_used(([last_sample] if last_sample else []) + window, phases)
        cost = energy * (price.value + fee_per_kwh)
        total_cost += cost
        total_energy += energy
        breakdown.append((price, energy, cost))
        last_sample = window[-1]

        logger.debug(
            "Calculated charge cost for %s UTC - %s UTC (unit cost: %s, fee per kWh: %s): %s for %s energy",
            price.valid_from,
            price.valid_to,
            price.value,
            fee_per_kwh,
            cost,
            energy,
        )

    unattributed.extend(ordered[cursor:])

    if unattributed:
        attributed = len(ordered) - len(unattributed)
        logger.warning(
            "Charge calculation incomplete, pricing calculated for %d / %d. Unprocessed charges:",
            attributed,
            len(ordered),
        )
        for sample in unattributed[:MAX_UNATTRIBUTED_LOGGED]:
            logger.warning("Unprocessed charge at %s UTC", sample.date)

        logger.warning("Charge time range: %s UTC to %s UTC", ordered[0].date, ordered[-1].date)
        logger.warning("Available price intervals:")
        for price in intervals:
            logger.warning("  %s UTC - %s UTC", price.valid_from, price.valid_to)

        raise IncompleteCoverage(
            f"Charge calculation failed, pricing calculated for {attributed} / {len(ordered)}, "
            "likely missing price data"
        )

    return AllocationResult(
        cost=round(total_cost, 2),
        energy=round(total_energy, 2),
        breakdown=breakdown,
    )
