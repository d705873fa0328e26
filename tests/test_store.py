"""Tests for the SQLite session store and importer."""

from datetime import datetime, timedelta, timezone

import pytest
from chargecost import db
from chargecost.importer import import_from_csv, parse_csv, save_samples
from chargecost.models import Sample
from chargecost.store import SqliteSessionStore

NOW = datetime(2025, 2, 1, 12, 0, tzinfo=timezone.utc)

CSV_HEADER = (
    "charging_process_id,date,charge_energy_added,charger_power,charger_phases,"
    "charger_actual_current,charger_voltage\n"
)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    db.init_db(path)
    return path


@pytest.fixture
def store(db_path):
    return SqliteSessionStore(db_path)


def samples(start, count=3):
    return [
        Sample(
            date=start + timedelta(minutes=i),
            charge_energy_added=0.1 * i,
            charger_power=11.0,
            charger_phases=3,
            charger_actual_current=16.0,
            charger_voltage=230.0,
        )
        for i in range(count)
    ]


def test_add_and_get_geofence(store):
    geofence_id = store.add_geofence("Home")

    geofence = store.get_geofence(geofence_id)
    assert geofence.name == "Home"
    assert geofence.cost_per_unit is None
    assert store.get_geofence(geofence_id + 1) is None


def test_list_pending_sessions(store, db_path):
    geofence_id = store.add_geofence("Home")
    save_samples(
        {
            2: list(reversed(samples(NOW - timedelta(days=1)))),
            1: samples(NOW - timedelta(days=2)),
        },
        geofence_id,
        db_path,
    )

    pending = store.list_pending_sessions(geofence_id)

    assert [s.id for s in pending] == [1, 2]
    first = pending[0]
    assert first.start_date == NOW - timedelta(days=2)
    assert first.end_date == NOW - timedelta(days=2) + timedelta(minutes=2)
    assert first.charge_energy_used == pytest.approx(0.2)
    assert [s.date for s in pending[1].samples] == sorted(s.date for s in pending[1].samples)
    assert pending[1].samples[0].charger_phases == 3


def test_list_pending_sessions_other_geofence(store, db_path):
    home = store.add_geofence("Home")
    work = store.add_geofence("Work")
    save_samples({1: samples(NOW)}, work, db_path)

    assert store.list_pending_sessions(home) == []


def test_list_pending_sessions_lookback(store, db_path):
    geofence_id = store.add_geofence("Home")
    save_samples(
        {1: samples(NOW - timedelta(days=10)), 2: samples(NOW - timedelta(days=3))},
        geofence_id,
        db_path,
    )

    pending = store.list_pending_sessions(geofence_id, lookback_days=7, now=NOW)

    assert [s.id for s in pending] == [2]


def test_list_pending_skips_unfinished(store, db_path):
    geofence_id = store.add_geofence("Home")
    with db.get_connection(db_path) as conn:
        conn.execute(
            "INSERT INTO charging_processes (id, geofence_id, start_date) VALUES (?, ?, ?)",
            (5, geofence_id, NOW.isoformat()),
        )
        conn.commit()

    assert store.list_pending_sessions(geofence_id) == []


def test_commit_result(store, db_path):
    geofence_id = store.add_geofence("Home")
    save_samples({1: samples(NOW)}, geofence_id, db_path)
    session = store.list_pending_sessions(geofence_id)[0]

    assert store.commit_result(session, 1.23, 4.56)

    assert session.cost == 1.23
    assert store.list_pending_sessions(geofence_id) == []


def test_commit_result_never_overwrites(store, db_path):
    geofence_id = store.add_geofence("Home")
    save_samples({1: samples(NOW)}, geofence_id, db_path)
    session = store.list_pending_sessions(geofence_id)[0]
    store.commit_result(session, 1.23, 4.56)

    assert not store.commit_result(session, 9.99, 4.56)

    with db.get_connection(db_path) as conn:
        row = conn.execute("SELECT cost FROM charging_processes WHERE id = 1").fetchone()
    assert row["cost"] == 1.23


def test_parse_csv(tmp_path):
    csv_file = tmp_path / "charges.csv"
    csv_file.write_text(
        CSV_HEADER
        + "7,2025-01-15T00:00:00Z,0.0,11.0,3,16,230\n"
        + "7,2025-01-15T00:01:00Z,0.2,11.0,,,\n"
        + "8,2025-01-16 00:00:00,0.0,7.4,1,32,231\n"
    )

    processes = parse_csv(csv_file)

    assert sorted(processes) == [7, 8]
    assert processes[7][0] == Sample(
        date=datetime(2025, 1, 15, tzinfo=timezone.utc),
        charge_energy_added=0.0,
        charger_power=11.0,
        charger_phases=3,
        charger_actual_current=16.0,
        charger_voltage=230.0,
    )
    assert processes[7][1].charger_phases is None
    assert processes[7][1].charger_voltage is None
    assert processes[8][0].date == datetime(2025, 1, 16, tzinfo=timezone.utc)


def test_import_from_csv_skips_duplicates(tmp_path, db_path):
    csv_file = tmp_path / "charges.csv"
    csv_file.write_text(
        CSV_HEADER
        + "7,2025-01-15T00:00:00Z,0.0,11.0,3,16,230\n"
        + "7,2025-01-15T00:01:00Z,0.2,11.0,3,16,230\n"
    )

    assert import_from_csv(csv_file, 1, db_path) == {"imported": 2, "skipped": 0}
    assert import_from_csv(csv_file, 1, db_path) == {"imported": 0, "skipped": 2}

    stats = db.get_stats(db_path)
    assert stats["charges"]["count"] == 2
    assert stats["charging_processes"]["count"] == 1
    assert stats["charging_processes"]["pending"] == 1


def test_save_samples_widens_existing_process(store, db_path):
    geofence_id = store.add_geofence("Home")
    save_samples({1: samples(NOW)}, geofence_id, db_path)
    save_samples({1: samples(NOW + timedelta(minutes=10))}, geofence_id, db_path)

    session = store.list_pending_sessions(geofence_id)[0]

    assert session.start_date == NOW
    assert session.end_date == NOW + timedelta(minutes=12)
    assert len(session.samples) == 6
