from __future__ import annotations

import logging
import os
import pathlib
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Protocol

from .models import PeriodKind, Recipient, SettingsRow, WasteEntry


# Default paths – the schema ships inside the package
PACKAGE_DIR = pathlib.Path(__file__).resolve().parent
DB_FILE = os.getenv("WASTAGE_DB", "wastage.db")
SCHEMA_FILE = str(PACKAGE_DIR / "schema.sql")
SCHEMA_VERSION = 1

TS_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the report database cannot be read or written."""


class ReportStore(Protocol):
    """Read-only view of the data the reporting engine needs."""

    def get_report_settings(self) -> Optional[SettingsRow]:
        ...

    def list_active_recipients(self) -> List[Recipient]:
        ...

    def entries_between(
        self, start: datetime, end: datetime
    ) -> List[WasteEntry]:
        ...


def to_db_timestamp(value: datetime) -> str:
    """Render *value* as the fixed-width UTC text stored in the database.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TS_FORMAT)


def from_db_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TS_FORMAT).replace(tzinfo=timezone.utc)


def parse_send_time(value: Optional[str]) -> int:
    """Convert ``HH:MM`` to minutes of day, ``-1`` when malformed."""
    if not value:
        return -1
    hh, _, mm = str(value).strip().partition(":")
    try:
        hours = int(hh or 0)
        minutes = int(mm or 0)
    except ValueError:
        return -1
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return -1
    return hours * 60 + minutes


def migrate(db_path: str = DB_FILE, schema_path: str = SCHEMA_FILE) -> None:
    """Run pending migrations on the database."""
    logger.info("Running migrations for %s", db_path)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER NOT NULL)"
        )
        cur = conn.execute("SELECT version FROM schema_version")
        row = cur.fetchone()
        current = row[0] if row else 0
        if current < SCHEMA_VERSION:
            logger.info("Applying schema version %s", SCHEMA_VERSION)
            with open(schema_path, "r", encoding="utf-8") as fh:
                conn.executescript(fh.read())
            if row:
                conn.execute(
                    "UPDATE schema_version SET version=?", (SCHEMA_VERSION,)
                )
            else:
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
            conn.commit()


def init_db(db_path: str = DB_FILE, schema_path: str = SCHEMA_FILE) -> None:
    """Initialize SQLite database using *schema_path*."""
    logger.info("Initializing database at %s", db_path)
    with sqlite3.connect(db_path) as conn:
        with open(schema_path, "r", encoding="utf-8") as fh:
            conn.executescript(fh.read())
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER NOT NULL)"
        )
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version(version) VALUES (?)",
            (SCHEMA_VERSION,),
        )


# ────────────────────────────────────────────────────────────────
# Write helpers (seeding, admin tooling, tests)
# ────────────────────────────────────────────────────────────────


def add_outlet(
    outlet_code: str,
    *,
    timezone_name: str = "UTC",
    name: Optional[str] = None,
    is_active: bool = True,
    db_path: str = DB_FILE,
) -> int:
    """Insert an outlet and return its row id."""
    logger.info("Adding outlet %s (%s)", outlet_code, timezone_name)
    with sqlite3.connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO outlets(outlet_code, name, timezone, is_active) "
            "VALUES (?,?,?,?)",
            (outlet_code, name or outlet_code, timezone_name, int(is_active)),
        )
        conn.commit()
        return cur.lastrowid


def add_item(
    item_code: str,
    label: str,
    *,
    unit: str = "pcs",
    color: str = "#000000",
    db_path: str = DB_FILE,
) -> int:
    """Insert a waste item and return its row id."""
    logger.info("Adding item %s", item_code)
    with sqlite3.connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO waste_items(item_code, label, unit, color) "
            "VALUES (?,?,?,?)",
            (item_code, label, unit, color),
        )
        conn.commit()
        return cur.lastrowid


def add_entry(
    outlet_id: int,
    item_id: int,
    quantity: Decimal | int | float,
    recorded_at: datetime,
    *,
    unit: Optional[str] = None,
    db_path: str = DB_FILE,
) -> int:
    """Insert a waste entry; *unit* defaults to the item's unit."""
    with sqlite3.connect(db_path) as conn:
        if unit is None:
            row = conn.execute(
                "SELECT unit FROM waste_items WHERE id=?", (item_id,)
            ).fetchone()
            if row is None:
                raise StorageError(f"unknown waste item {item_id}")
            unit = row[0]
        cur = conn.execute(
            "INSERT INTO waste_entries"
            "(outlet_id, item_id, quantity, unit, recorded_at) "
            "VALUES (?,?,?,?,?)",
            (
                outlet_id,
                item_id,
                str(Decimal(str(quantity))),
                unit,
                to_db_timestamp(recorded_at),
            ),
        )
        conn.commit()
        return cur.lastrowid


def add_recipient(
    email: str,
    report_type: str,
    send_time: str,
    *,
    is_active: bool = True,
    db_path: str = DB_FILE,
) -> int:
    """Insert a report recipient; *send_time* is ``HH:MM`` local time."""
    logger.info("Adding %s recipient %s at %s", report_type, email, send_time)
    with sqlite3.connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO report_recipients"
            "(email, report_type, send_time, is_active) VALUES (?,?,?,?)",
            (email, report_type, send_time, int(is_active)),
        )
        conn.commit()
        return cur.lastrowid


def set_report_settings(
    timezone_name: Optional[str],
    cutoff_hour: Optional[int],
    db_path: str = DB_FILE,
) -> None:
    """Replace the single report settings row."""
    logger.info(
        "Setting report timezone=%s cutoff_hour=%s", timezone_name, cutoff_hour
    )
    with sqlite3.connect(db_path) as conn:
        conn.execute("DELETE FROM report_settings")
        conn.execute(
            "INSERT INTO report_settings(timezone, cutoff_hour) VALUES (?,?)",
            (timezone_name, cutoff_hour),
        )
        conn.commit()


# ────────────────────────────────────────────────────────────────
# Read side
# ────────────────────────────────────────────────────────────────


class SqliteStore:
    """:class:`ReportStore` backed by the SQLite database at *db_path*."""

    def __init__(self, db_path: str = DB_FILE) -> None:
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def get_report_settings(self) -> Optional[SettingsRow]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT timezone, cutoff_hour FROM report_settings "
                    "ORDER BY id ASC LIMIT 1"
                ).fetchone()
                tz_name, cutoff = row if row else (None, None)
                if not tz_name or not str(tz_name).strip():
                    outlet = conn.execute(
                        "SELECT timezone FROM outlets WHERE is_active=1 "
                        "ORDER BY id ASC LIMIT 1"
                    ).fetchone()
                    tz_name = outlet[0] if outlet else None
        except sqlite3.Error as exc:
            raise StorageError(f"cannot read report settings: {exc}") from exc

        if row is None and tz_name is None:
            return None
        return SettingsRow(
            timezone=str(tz_name).strip() if tz_name else None,
            cutoff_hour=cutoff,
        )

    def list_active_recipients(self) -> List[Recipient]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT id, email, report_type, send_time "
                    "FROM report_recipients WHERE is_active=1 ORDER BY id ASC"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot read recipients: {exc}") from exc

        recipients: List[Recipient] = []
        for rec_id, email, report_type, send_time in rows:
            try:
                kind = PeriodKind(str(report_type).strip().lower())
            except ValueError:
                logger.warning(
                    "Skipping recipient %s: unknown report type %r",
                    email,
                    report_type,
                )
                continue
            recipients.append(
                Recipient(
                    email=email,
                    report_type=kind,
                    send_time_minutes=parse_send_time(send_time),
                    is_active=True,
                    id=rec_id,
                )
            )
        return recipients

    def entries_between(
        self, start: datetime, end: datetime
    ) -> List[WasteEntry]:
        q = """
        SELECT o.outlet_code, i.item_code, i.label, e.unit, i.color,
               e.quantity, e.recorded_at
          FROM waste_entries e
          JOIN outlets o ON o.id = e.outlet_id
          JOIN waste_items i ON i.id = e.item_id
         WHERE e.recorded_at >= ? AND e.recorded_at < ?
         ORDER BY e.recorded_at ASC, e.id ASC
        """
        logger.info("Querying entries in [%s, %s)", start, end)
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    q, (to_db_timestamp(start), to_db_timestamp(end))
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot read waste entries: {exc}") from exc

        return [
            WasteEntry(
                outlet_code=outlet,
                item_code=item,
                item_label=label,
                unit=unit,
                color_tag=color,
                quantity=Decimal(str(qty)),
                recorded_at_utc=from_db_timestamp(ts),
            )
            for outlet, item, label, unit, color, qty, ts in rows
        ]


__all__ = [
    "StorageError",
    "ReportStore",
    "SqliteStore",
    "init_db",
    "migrate",
    "add_outlet",
    "add_item",
    "add_entry",
    "add_recipient",
    "set_report_settings",
    "parse_send_time",
    "to_db_timestamp",
    "from_db_timestamp",
]
