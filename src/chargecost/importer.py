"""Charging telemetry importer.

Imports charge samples from CSV exports of a charging logger.
CSV format: charging_process_id, date, charge_energy_added, charger_power,
charger_phases, charger_actual_current, charger_voltage
"""

import csv
from pathlib import Path

from .db import get_connection, parse_timestamp
from .models import Sample


def _optional(value: str | None, cast):
    if value is None or value.strip() == "":
        return None
    return cast(value)


def parse_csv(csv_path: Path) -> dict[int, list[Sample]]:
    """Parse a charges CSV export, grouping samples by charging process."""
    processes: dict[int, list[Sample]] = {}
    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            sample = Sample(
                date=parse_timestamp(row["date"]),
                charge_energy_added=float(row["charge_energy_added"]),
                charger_power=float(row["charger_power"]),
                charger_phases=_optional(row.get("charger_phases"), int),
                charger_actual_current=_optional(row.get("charger_actual_current"), float),
                charger_voltage=_optional(row.get("charger_voltage"), float),
            )
            processes.setdefault(int(row["charging_process_id"]), []).append(sample)
    return processes


def import_from_csv(csv_path: Path, geofence_id: int, db_path: Path | None = None) -> dict:
    """Import charge samples from a CSV file.

    Returns dict with 'imported' and 'skipped' counts.
    """
    processes = parse_csv(csv_path)
    return save_samples(processes, geofence_id, db_path)


def save_samples(
    processes: dict[int, list[Sample]], geofence_id: int, db_path: Path | None = None
) -> dict:
    """Save samples, creating or widening their charging processes.

    Returns dict with 'imported' and 'skipped' counts.
    """
    imported = 0
    skipped = 0

    with get_connection(db_path) as conn:
        for process_id, samples in processes.items():
            dates = [s.date for s in samples]
            existing = conn.execute(
                "SELECT start_date, end_date FROM charging_processes WHERE id = ?",
                (process_id,),
            ).fetchone()

            if existing:
                dates.append(parse_timestamp(existing["start_date"]))
                if existing["end_date"]:
                    dates.append(parse_timestamp(existing["end_date"]))
                conn.execute(
                    "UPDATE charging_processes SET start_date = ?, end_date = ? WHERE id = ?",
                    (min(dates).isoformat(), max(dates).isoformat(), process_id),
                )
            else:
                conn.execute(
                    """INSERT INTO charging_processes (id, geofence_id, start_date, end_date)
                       VALUES (?, ?, ?, ?)""",
                    (process_id, geofence_id, min(dates).isoformat(), max(dates).isoformat()),
                )

            for sample in samples:
                cursor = conn.execute(
                    """INSERT OR IGNORE INTO charges
                       (charging_process_id, date, charge_energy_added, charger_power,
                        charger_phases, charger_actual_current, charger_voltage)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        process_id,
                        sample.date.isoformat(),
                        sample.charge_energy_added,
                        sample.charger_power,
                        sample.charger_phases,
                        sample.charger_actual_current,
                        sample.charger_voltage,
                    ),
                )
                if cursor.rowcount:
                    imported += 1
                else:
                    # Duplicate (UNIQUE constraint)
                    skipped += 1

            # Energy the logger recorded for the whole process
            conn.execute(
                """UPDATE charging_processes
                   SET charge_energy_used = (
                       SELECT MAX(charge_energy_added) FROM charges WHERE charging_process_id = ?
                   )
                   WHERE id = ?""",
                (process_id, process_id),
            )

        conn.commit()

    return {"imported": imported, "skipped": skipped}
