"""Additive SQLite schema upgrades for databases created by older releases."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

# Columns added after the first release. Migrations only ever ADD; nothing is dropped.
ORDER_COLUMNS: dict[str, str] = {
    "sales_order": "TEXT",
    "deal_id": "TEXT",
    "nucleus_id": "TEXT",
    "school_name": "TEXT",
    "sd_card_size": "TEXT",
    "profile_id": "TEXT",
    "location": "TEXT",
    "generated_serials": "INTEGER DEFAULT 0 NOT NULL",
    "deleted_at": "TEXT",
    "is_deleted": "INTEGER DEFAULT 0 NOT NULL",
}

DEVICE_COLUMNS: dict[str, str] = {
    "order_type": "TEXT",
    "sales_order": "TEXT",
    "deal_id": "TEXT",
    "nucleus_id": "TEXT",
    "school_name": "TEXT",
    "quantity": "INTEGER",
    "sd_card_size": "TEXT",
    "profile_id": "TEXT",
    "location": "TEXT",
    "deleted_at": "TEXT",
    "is_deleted": "INTEGER DEFAULT 0 NOT NULL",
}


def _column_names(engine: Engine, table: str) -> set[str]:
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()
    return {row["name"] for row in rows}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def _add_missing_columns(engine: Engine, table: str, needed: dict[str, str]) -> list[str]:
    existing = _column_names(engine, table)
    if not existing:
        # Table absent; ``Base.metadata.create_all`` builds it fresh.
        return []
    added = []
    for name, dtype in needed.items():
        if name not in existing:
            _add_column_sqlite(engine, table, f"{name} {dtype}")
            added.append(name)
    return added


def run_migrations(engine: Engine) -> list[str]:
    """Bring a SQLite schema up to date. Returns the ``table.column`` names added."""

    if engine.dialect.name != "sqlite":
        return []

    applied = [f"orders.{name}" for name in _add_missing_columns(engine, "orders", ORDER_COLUMNS)]
    applied += [f"devices.{name}" for name in _add_missing_columns(engine, "devices", DEVICE_COLUMNS)]

    if _column_names(engine, "devices"):
        _create_index_if_not_exists(engine, "devices", "ix_devices_serial_unique", ["serial_number"], unique=True)
        _create_index_if_not_exists(engine, "devices", "ix_devices_order_id", ["order_id"])
    return applied
