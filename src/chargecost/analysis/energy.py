"""Phase inference and energy integration from charging telemetry."""

import logging
import math

from ..models import Sample

logger = logging.getLogger(__name__)

# Phase correction thresholds
MIN_SAMPLES_FOR_CORRECTION = 15  # samples - fewer than this is too noisy to correct
SQRT3_DEVIATION = 0.1  # ratio - 3-phase reported but power fits sqrt(3)
ROUNDING_DEVIATION = 0.3  # phases - how far from a whole phase count we accept


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def determine_phases(samples: list[Sample]) -> float | None:
    """Infer the number of AC phases a session charged on.

    Algorithm:
    1. For every sample with current and voltage, compute
       power * 1000 / (current * voltage) and average the finite ratios.
    2. Average the reported phase counts and round to a whole number.
    3. With more than 15 samples and a positive ratio, accept the reported
       phases when they agree with the ratio, fall back to sqrt(3) for
       3-phase chargers reporting phase-to-phase voltage, or take the
       rounded ratio when it is close to a whole number.

    Returns None when the phase count cannot be inferred.
    """
    ratios = []
    for s in samples:
        if s.charger_actual_current is None or s.charger_voltage is None:
            continue
        denominator = s.charger_actual_current * s.charger_voltage
        if denominator == 0:
            continue
        ratio = s.charger_power * 1000.0 / denominator
        if math.isfinite(ratio):
            ratios.append(ratio)

    if not ratios:
        logger.warning("No charges with power data")
        return None
    power_average = _mean(ratios)

    phases = [s.charger_phases for s in samples if s.charger_phases is not None]
    if not phases:
        logger.warning("No charges with phase data")
        return None
    phases_average = round(_mean(phases))

    voltage_average = _mean([s.charger_voltage for s in samples if s.charger_voltage is not None])

    if power_average > 0 and len(samples) > MIN_SAMPLES_FOR_CORRECTION:
        if phases_average == round(power_average):
            return float(phases_average)

        if phases_average == 3 and abs(power_average / math.sqrt(3) - 1) <= SQRT3_DEVIATION:
            logger.info(
                "Voltage correction: %sV -> %sV",
                round(voltage_average),
                round(voltage_average / math.sqrt(3)),
            )
            return math.sqrt(3)

        if abs(round(power_average) - power_average) <= ROUNDING_DEVIATION:
            logger.info("Phase correction: %s -> %s", phases_average, round(power_average))
            return float(round(power_average))

    return None


def sample_power(sample: Sample, phases: float) -> float:
    """Instantaneous power (kW) of a sample for an assumed phase count."""
    if sample.charger_phases is None:
        return sample.charger_power
    current = sample.charger_actual_current or 0
    voltage = sample.charger_voltage or 0
    return current * voltage * phases / 1000


def calculate_energy_used(samples: list[Sample], phases: float) -> float:
    """Integrate sample power over time into kWh.

    Each sample contributes its power multiplied by the hours since the
    closest sample with an earlier timestamp. The earliest sample has no
    predecessor and contributes nothing, so to integrate a window of a
    session pass the window's samples plus the last sample before it.
    Negative contributions are ignored.
    """
    ordered = sorted(samples, key=lambda s: s.date)

    total = 0.0
    previous_date = None  # latest timestamp strictly before the current group
    group_date = None
    for sample in ordered:
        if sample.date != group_date:
            previous_date = group_date
            group_date = sample.date

        if previous_date is None:
            continue

        hours = (sample.date - previous_date).total_seconds() / 3600
        energy = sample_power(sample, phases) * hours
        if math.isfinite(energy) and energy >= 0:
            total += energy

    return total
