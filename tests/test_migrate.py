import os
import sys
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from device_inventory.db.migrate import run_migrations


def test_run_migrations_adds_missing_columns():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE orders (id TEXT PRIMARY KEY, order_type TEXT, product TEXT, model TEXT, "
                "quantity INTEGER, warehouse TEXT, serial_numbers TEXT, order_date TEXT, created_at TEXT, "
                "updated_at TEXT)"
            )
        )
        conn.execute(
            text(
                "CREATE TABLE devices (id INTEGER PRIMARY KEY, serial_number TEXT, order_id TEXT, product TEXT, "
                "model TEXT, warehouse TEXT, status TEXT, created_at TEXT, updated_at TEXT)"
            )
        )

    applied = run_migrations(engine)

    assert "orders.is_deleted" in applied
    assert "devices.school_name" in applied
    assert run_migrations(engine) == []
    with engine.connect() as conn:
        indexes = {row[1] for row in conn.execute(text("PRAGMA index_list(devices)")).all()}
    assert "ix_devices_serial_unique" in indexes


def test_run_migrations_skips_missing_tables():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    assert run_migrations(engine) == []
