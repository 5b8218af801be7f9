"""
SQLite inventory database.

Database at /var/lib/arp-monitor/arp_monitoring.db storing:
- Monitoring jobs (written by the API layer, read by the scheduler)
- Device inventory keyed by MAC address
- Alerts raised during reconciliation
- One scan result per job execution

Uses WAL mode for crash safety and concurrent reads.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from ._types import (
    Alert,
    AlertLevel,
    AlertType,
    Device,
    ScanResult,
    ScanStatus,
    UNKNOWN_VENDOR,
    normalize_mac,
    now_utc,
)
from .exceptions import PersistenceFailure
from .models import AlertPolicy, Job
from .store import InventoryStore

logger = logging.getLogger(__name__)


# Database schema
SCHEMA = """
-- Monitoring jobs
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    interfaces TEXT NOT NULL,       -- JSON array
    subnets TEXT NOT NULL,          -- JSON array
    authorized_macs TEXT,           -- JSON array
    frequency INTEGER NOT NULL,
    is_active BOOLEAN DEFAULT TRUE,
    alert_config TEXT NOT NULL,     -- JSON object
    last_run TEXT,
    next_run TEXT,
    created_at TEXT NOT NULL
);

-- Device inventory
CREATE TABLE IF NOT EXISTS devices (
    id TEXT PRIMARY KEY,
    mac TEXT UNIQUE NOT NULL,
    ip TEXT NOT NULL,
    vendor TEXT,
    hostname TEXT,
    first_seen TEXT NOT NULL,
    last_seen TEXT NOT NULL,
    is_authorized BOOLEAN DEFAULT FALSE,
    previous_ips TEXT DEFAULT '[]'  -- JSON array
);

-- Alerts
CREATE TABLE IF NOT EXISTS alerts (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL,
    job_name TEXT NOT NULL,
    type TEXT NOT NULL,
    level TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    device_data TEXT,               -- JSON object
    timestamp TEXT NOT NULL,
    acknowledged BOOLEAN DEFAULT FALSE
);

-- Scan results, one per job execution
CREATE TABLE IF NOT EXISTS scan_results (
    id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    devices_found INTEGER NOT NULL,
    new_devices INTEGER NOT NULL,
    execution_time INTEGER NOT NULL,  -- milliseconds
    status TEXT NOT NULL,
    error_message TEXT
);

CREATE INDEX IF NOT EXISTS idx_jobs_active ON jobs(is_active);
CREATE INDEX IF NOT EXISTS idx_devices_mac ON devices(mac);
CREATE INDEX IF NOT EXISTS idx_devices_ip ON devices(ip);
CREATE INDEX IF NOT EXISTS idx_alerts_job_id ON alerts(job_id);
CREATE INDEX IF NOT EXISTS idx_alerts_timestamp ON alerts(timestamp);
CREATE INDEX IF NOT EXISTS idx_scan_results_job_id ON scan_results(job_id);
CREATE INDEX IF NOT EXISTS idx_scan_results_timestamp ON scan_results(timestamp);
"""


def _iso_format(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO string."""
    return dt.isoformat() if dt else None


def _parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string."""
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


class InventoryDatabase(InventoryStore):
    """
    SQLite implementation of the inventory store.

    Opens a connection per operation, so every method is atomic on its
    own and the object can be shared by all scheduled jobs.
    """

    def __init__(self, db_path: Path | str = "/var/lib/arp-monitor/arp_monitoring.db"):
        self.db_path = Path(db_path)
        self._ensure_directory()
        self._init_db()

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        """Initialize database with schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory."""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot open {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def save_job(self, job: Job) -> None:
        """Insert or replace a job."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO jobs (
                    id, name, description, interfaces, subnets, authorized_macs,
                    frequency, is_active, alert_config, last_run, next_run, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    interfaces = excluded.interfaces,
                    subnets = excluded.subnets,
                    authorized_macs = excluded.authorized_macs,
                    frequency = excluded.frequency,
                    is_active = excluded.is_active,
                    alert_config = excluded.alert_config
            """, (
                job.id,
                job.name,
                job.description,
                json.dumps(job.interfaces),
                json.dumps(job.subnets),
                json.dumps(job.authorized_macs),
                job.frequency,
                job.is_active,
                job.alert_config.model_dump_json(by_alias=True),
                _iso_format(job.last_run),
                _iso_format(job.next_run),
                _iso_format(now_utc()),
            ))
            conn.commit()

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get job by ID. A row that fails validation reads as missing."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()

        if not row:
            return None
        try:
            return self._row_to_job(row)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Job {job_id} is invalid: {e}")
            return None

    def get_active_jobs(self) -> list[Job]:
        """Get every active job. Rows that fail validation are skipped."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM jobs WHERE is_active = TRUE ORDER BY created_at"
            ).fetchall()

        jobs = []
        for row in rows:
            try:
                jobs.append(self._row_to_job(row))
            except (ValidationError, ValueError) as e:
                logger.warning(f"Skipping invalid job {row['id']}: {e}")
        return jobs

    def set_job_active(self, job_id: str, is_active: bool) -> bool:
        """Activate or deactivate a job."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE jobs SET is_active = ? WHERE id = ?",
                (is_active, job_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def update_job_run_times(
        self,
        job_id: str,
        last_run: datetime,
        next_run: Optional[datetime] = None,
    ) -> None:
        """Record when a job last ran and when it is next due."""
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE jobs SET last_run = ?, next_run = ? WHERE id = ?",
                (_iso_format(last_run), _iso_format(next_run), job_id),
            )
            conn.commit()

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        """Convert database row to Job object."""
        return Job(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            interfaces=json.loads(row["interfaces"]),
            subnets=json.loads(row["subnets"]),
            authorized_macs=json.loads(row["authorized_macs"] or "[]"),
            frequency=row["frequency"],
            is_active=bool(row["is_active"]),
            alert_config=AlertPolicy.model_validate(json.loads(row["alert_config"] or "{}")),
            last_run=_parse_datetime(row["last_run"]),
            next_run=_parse_datetime(row["next_run"]),
        )

    # -------------------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------------------

    def get_device_by_mac(self, mac: str) -> Optional[Device]:
        """Get device by MAC address."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM devices WHERE mac = ?", (normalize_mac(mac),)
            ).fetchone()
            if row:
                return self._row_to_device(row)
            return None

    def insert_device(self, device: Device) -> None:
        """Insert a newly discovered device."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO devices (
                    id, mac, ip, vendor, hostname, first_seen, last_seen,
                    is_authorized, previous_ips
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                device.id,
                device.mac,
                device.ip,
                device.vendor,
                device.hostname,
                _iso_format(device.first_seen),
                _iso_format(device.last_seen),
                device.is_authorized,
                json.dumps(device.previous_ips),
            ))
            conn.commit()

    def update_device(self, device: Device) -> None:
        """Update address, history and last-seen of a known device."""
        with self._get_connection() as conn:
            conn.execute("""
                UPDATE devices SET
                    ip = ?,
                    previous_ips = ?,
                    last_seen = ?
                WHERE mac = ?
            """, (
                device.ip,
                json.dumps(device.previous_ips),
                _iso_format(device.last_seen),
                device.mac,
            ))
            conn.commit()

    def get_devices(self, limit: int = 100, offset: int = 0) -> list[Device]:
        """Get devices, most recently seen first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM devices ORDER BY last_seen DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            return [self._row_to_device(row) for row in rows]

    def count_devices(self) -> int:
        with self._get_connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS cnt FROM devices").fetchone()
            return row["cnt"]

    def _row_to_device(self, row: sqlite3.Row) -> Device:
        """Convert database row to Device object."""
        return Device(
            id=row["id"],
            mac=row["mac"],
            ip=row["ip"],
            vendor=row["vendor"] or UNKNOWN_VENDOR,
            hostname=row["hostname"],
            first_seen=_parse_datetime(row["first_seen"]) or now_utc(),
            last_seen=_parse_datetime(row["last_seen"]) or now_utc(),
            is_authorized=bool(row["is_authorized"]),
            previous_ips=json.loads(row["previous_ips"] or "[]"),
        )

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    def insert_alert(self, alert: Alert) -> None:
        """Persist an alert."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO alerts (
                    id, job_id, job_name, type, level, title, message,
                    device_data, timestamp, acknowledged
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                alert.id,
                alert.job_id,
                alert.job_name,
                alert.type.value,
                alert.level.value,
                alert.title,
                alert.message,
                json.dumps(alert.device_data),
                _iso_format(alert.timestamp),
                alert.acknowledged,
            ))
            conn.commit()

    def get_alerts(
        self,
        job_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[Alert]:
        """Get recent alerts, optionally for one job."""
        query = "SELECT * FROM alerts"
        params: list = []

        if job_id:
            query += " WHERE job_id = ?"
            params.append(job_id)

        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [
                Alert(
                    id=row["id"],
                    job_id=row["job_id"],
                    job_name=row["job_name"],
                    type=AlertType(row["type"]),
                    level=AlertLevel(row["level"]),
                    title=row["title"],
                    message=row["message"],
                    device_data=json.loads(row["device_data"] or "{}"),
                    timestamp=_parse_datetime(row["timestamp"]) or now_utc(),
                    acknowledged=bool(row["acknowledged"]),
                )
                for row in rows
            ]

    def acknowledge_alert(self, alert_id: str) -> bool:
        """Mark an alert as acknowledged."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE alerts SET acknowledged = TRUE WHERE id = ?", (alert_id,)
            )
            conn.commit()
            return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Scan Results
    # -------------------------------------------------------------------------

    def insert_scan_result(self, result: ScanResult) -> None:
        """Persist the outcome of one job execution."""
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO scan_results (
                    id, job_id, timestamp, devices_found, new_devices,
                    execution_time, status, error_message
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                result.id,
                result.job_id,
                _iso_format(result.timestamp),
                result.devices_found,
                result.new_devices,
                result.execution_time_ms,
                result.status.value,
                result.error_message,
            ))
            conn.commit()

    def get_scan_results(
        self,
        job_id: Optional[str] = None,
        limit: int = 50,
    ) -> list[ScanResult]:
        """Get recent scan results, optionally for one job."""
        query = "SELECT * FROM scan_results"
        params: list = []

        if job_id:
            query += " WHERE job_id = ?"
            params.append(job_id)

        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [
                ScanResult(
                    id=row["id"],
                    job_id=row["job_id"],
                    timestamp=_parse_datetime(row["timestamp"]) or now_utc(),
                    devices_found=row["devices_found"],
                    new_devices=row["new_devices"],
                    execution_time_ms=row["execution_time"],
                    status=ScanStatus(row["status"]),
                    error_message=row["error_message"],
                )
                for row in rows
            ]
