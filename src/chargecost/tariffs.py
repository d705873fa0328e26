"""Tariff loading and conversion of local tariff calendars to UTC price intervals."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml

from .errors import ScheduleBoundaryNotFound
from .models import PriceInterval, TempoDay

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "tariffs.yaml"

TEMPO_TIMEZONE = "Europe/Paris"
TEMPO_CODES = {"blue": 1, "white": 2, "red": 3}

# Tempo segments: (local start, local end, day offset for the colour, peak flag)
# Early hours are billed at the previous day's colour. An end of None means midnight.
TEMPO_SEGMENTS = [
    (time(0, 0), time(6, 0), -1, 0),
    (time(6, 0), time(22, 0), 0, 1),
    (time(22, 0), None, 0, 0),
]


@dataclass
class TariffRate:
    """A time-of-use rate period."""

    start_time: str  # HH:MM format
    end_time: str  # HH:MM format
    rate: float  # currency per kWh
    days: str = "*"  # '*' = all, 'weekdays', 'weekends'


@dataclass
class TariffConfig:
    """Tariff tables loaded from YAML."""

    tempo_prices: dict[tuple[int, int], float]
    tempo_timezone: str
    fixed_rates: list[TariffRate]
    fixed_timezone: str


def load_tariff_config(config_path: Path | None = None) -> TariffConfig:
    """Load tariff tables from a YAML config file."""
    path = config_path or DEFAULT_CONFIG_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    tempo = data.get("tempo", {})
    tempo_prices = {}
    for colour, prices in tempo.get("prices", {}).items():
        if colour not in TEMPO_CODES:
            raise ValueError(f"Unknown Tempo colour '{colour}' in {path}")
        code = TEMPO_CODES[colour]
        tempo_prices[(code, 0)] = float(prices["off_peak"])
        tempo_prices[(code, 1)] = float(prices["peak"])

    fixed = data.get("fixed_price", {})
    fixed_rates = [
        TariffRate(
            start_time=r["start"],
            end_time=r["end"],
            rate=float(r["rate"]),
            days=r.get("days", "*"),
        )
        for r in fixed.get("rates", [])
    ]

    return TariffConfig(
        tempo_prices=tempo_prices,
        tempo_timezone=tempo.get("timezone", TEMPO_TIMEZONE),
        fixed_rates=fixed_rates,
        fixed_timezone=fixed.get("timezone", "UTC"),
    )


def parse_time(time_str: str) -> time:
    """Parse HH:MM string to time object."""
    parts = time_str.split(":")
    return time(int(parts[0]), int(parts[1]))


def local_to_utc(day: date, at: time | None, tz: ZoneInfo) -> datetime:
    """Convert a local wall-clock time on a day to UTC.

    The offset is resolved for this instant alone, so two boundaries of the
    same day can convert with different offsets across a DST change.
    """
    if at is None:
        day, at = day + timedelta(days=1), time(0, 0)
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def build_tempo_schedule(
    days: list[TempoDay],
    prices: dict[tuple[int, int], float],
    start: datetime,
    end: datetime,
    tz: ZoneInfo | str = TEMPO_TIMEZONE,
) -> list[PriceInterval]:
    """Expand a Tempo colour calendar into UTC price intervals covering [start, end].

    The first day only provides the colour for the early hours of the second.
    Raises ScheduleBoundaryNotFound if the calendar does not contain the range.
    """
    if isinstance(tz, str):
        tz = ZoneInfo(tz)
    start = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)

    schedule = []
    for i in range(1, len(days)):
        for seg_start, seg_end, day_offset, peak in TEMPO_SEGMENTS:
            schedule.append(
                (
                    local_to_utc(days[i].date, seg_start, tz),
                    local_to_utc(days[i].date, seg_end, tz),
                    days[i + day_offset].code,
                    peak,
                )
            )
    schedule.sort(key=lambda s: s[0])

    logger.debug("Built %d schedule segments", len(schedule))
    for seg_start, seg_end, code, peak in schedule:
        logger.debug("Segment %s -> %s UTC, code %s, peak %s", seg_start, seg_end, code, peak)

    # Prefer the later segment for the start and the earlier one for the end
    # so a range on a segment boundary never yields an empty interval
    first = None
    for i, (seg_start, seg_end, _, _) in enumerate(schedule):
        if seg_start <= start <= seg_end:
            first = i

    last = None
    if first is not None:
        for i in range(first, len(schedule)):
            if schedule[i][0] <= end <= schedule[i][1]:
                last = i
                break

    if first is None or last is None:
        logger.error("Could not locate schedule for range %s -> %s", start, end)
        raise ScheduleBoundaryNotFound(f"Unable to locate tempo schedule for range {start} -> {end}")

    intervals = []
    for i in range(first, last + 1):
        seg_start, seg_end, code, peak = schedule[i]
        if (code, peak) not in prices:
            raise ValueError(f"No Tempo price configured for code {code} (peak={peak})")
        intervals.append(
            PriceInterval(
                valid_from=start if i == first else seg_start,
                valid_to=end if i == last else seg_end,
                value=prices[(code, peak)],
            )
        )

    for interval in intervals:
        logger.debug("Price: %s, %s, %s", interval.valid_from, interval.valid_to, interval.value)

    return intervals


def _rate_applies(rate: TariffRate, day: date) -> bool:
    weekday = day.weekday()
    if rate.days == "weekdays" and weekday >= 5:
        return False
    if rate.days == "weekends" and weekday < 5:
        return False
    return True


def expand_fixed_rates(
    rates: list[TariffRate],
    start: datetime,
    end: datetime,
    tz: ZoneInfo | str = "UTC",
) -> list[PriceInterval]:
    """Expand daily time-of-use rates into UTC price intervals overlapping [start, end].

    A rate whose end is not after its start runs overnight into the next day.
    """
    if isinstance(tz, str):
        tz = ZoneInfo(tz)
    local_start = start.astimezone(tz).date()
    local_end = end.astimezone(tz).date()

    intervals = []
    day = local_start - timedelta(days=1)
    while day <= local_end:
        for rate in rates:
            if not _rate_applies(rate, day):
                continue
            rate_start = parse_time(rate.start_time)
            rate_end = parse_time(rate.end_time)
            valid_from = local_to_utc(day, rate_start, tz)
            if rate_end <= rate_start:
                valid_to = local_to_utc(day + timedelta(days=1), rate_end, tz)
            else:
                valid_to = local_to_utc(day, rate_end, tz)
            if valid_to > start and valid_from <= end:
                intervals.append(PriceInterval(valid_from, valid_to, rate.rate))
        day += timedelta(days=1)

    return sorted(intervals)
