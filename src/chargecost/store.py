"""SQLite-backed store of charging sessions awaiting a cost."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .db import get_connection, parse_timestamp
from .models import ChargingSession, Geofence, Sample

logger = logging.getLogger(__name__)


class SqliteSessionStore:
    """Load pending charging sessions and record their reconciled cost."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path

    def get_geofence(self, geofence_id: int) -> Geofence | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT id, name, cost_per_unit FROM geofences WHERE id = ?",
                (geofence_id,),
            ).fetchone()
        if not row:
            return None
        return Geofence(id=row["id"], name=row["name"], cost_per_unit=row["cost_per_unit"])

    def add_geofence(self, name: str, cost_per_unit: float | None = None) -> int:
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                "INSERT INTO geofences (name, cost_per_unit) VALUES (?, ?)",
                (name, cost_per_unit),
            )
            conn.commit()
            return cursor.lastrowid

    def list_pending_sessions(
        self,
        geofence_id: int,
        lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> list[ChargingSession]:
        """Finished sessions in a geofence that have no cost yet, oldest first."""
        query = """SELECT id, geofence_id, start_date, end_date, charge_energy_used, cost
                   FROM charging_processes
                   WHERE geofence_id = ? AND end_date IS NOT NULL AND cost IS NULL
                   ORDER BY start_date"""

        with get_connection(self.db_path) as conn:
            rows = conn.execute(query, (geofence_id,)).fetchall()

            sessions = []
            for row in rows:
                start_date = parse_timestamp(row["start_date"])
                if lookback_days is not None:
                    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=lookback_days)
                    if start_date <= cutoff:
                        continue

                charge_rows = conn.execute(
                    """SELECT date, charge_energy_added, charger_power, charger_phases,
                              charger_actual_current, charger_voltage
                       FROM charges
                       WHERE charging_process_id = ?""",
                    (row["id"],),
                ).fetchall()

                samples = sorted(
                    (
                        Sample(
                            date=parse_timestamp(c["date"]),
                            charge_energy_added=c["charge_energy_added"],
                            charger_power=c["charger_power"],
                            charger_phases=c["charger_phases"],
                            charger_actual_current=c["charger_actual_current"],
                            charger_voltage=c["charger_voltage"],
                        )
                        for c in charge_rows
                    ),
                    key=lambda s: s.date,
                )

                sessions.append(
                    ChargingSession(
                        id=row["id"],
                        geofence_id=row["geofence_id"],
                        start_date=start_date,
                        end_date=parse_timestamp(row["end_date"]),
                        samples=samples,
                        charge_energy_used=row["charge_energy_used"],
                        cost=row["cost"],
                    )
                )

        return sessions

    def commit_result(self, session: ChargingSession, cost: float, energy: float) -> bool:
        """Record a session's cost. A cost already set is never overwritten.

        Returns True if the cost was written.
        """
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                "UPDATE charging_processes SET cost = ? WHERE id = ? AND cost IS NULL",
                (cost, session.id),
            )
            conn.commit()

        if cursor.rowcount == 0:
            logger.warning("Charging process %s already has a cost, not overwriting", session.id)
            return False

        session.cost = cost
        logger.debug("Saved cost %s for %s kWh on charging process %s", cost, energy, session.id)
        return True
