"""
Type definitions for the ARP monitor.

These dataclasses define the core domain records for host discovery,
device inventory, alerting and scan history.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


UNKNOWN_VENDOR = "Unknown"


def now_utc() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def normalize_mac(mac: str) -> str:
    """Normalize a hardware address to lowercase, colon-separated hex."""
    return mac.strip().lower().replace("-", ":")


class AlertType(str, Enum):
    """Kinds of inventory change that raise an alert."""
    NEW_DEVICE = "new_device"
    IP_CHANGE = "ip_change"
    UNAUTHORIZED_DEVICE = "unauthorized_device"


class AlertLevel(str, Enum):
    """Alert severity."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ScanStatus(str, Enum):
    """Outcome of a job execution."""
    SUCCESS = "success"
    ERROR = "error"


class Classification(str, Enum):
    """Result of reconciling one discovered device against the inventory."""
    NEW = "new"              # No inventory entry for this MAC
    MOVED = "moved"          # Known MAC, different IP
    UNCHANGED = "unchanged"  # Known MAC, same IP


@dataclass
class DiscoveredDevice:
    """
    A host reported by one discovery invocation.

    This is the raw record before reconciliation; it is also the
    snapshot stored on alerts.
    """
    ip: str
    mac: str
    vendor: str = UNKNOWN_VENDOR

    def to_dict(self) -> dict:
        return {"ip": self.ip, "mac": self.mac, "vendor": self.vendor}


@dataclass
class Device:
    """
    An inventory entry, keyed by hardware address.

    previous_ips keeps every address the device held before its current
    one, in the order they were left, without duplicates and never
    including the current ip.
    """
    mac: str
    ip: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    vendor: str = UNKNOWN_VENDOR
    hostname: Optional[str] = None
    first_seen: datetime = field(default_factory=now_utc)
    last_seen: datetime = field(default_factory=now_utc)
    is_authorized: bool = False
    previous_ips: list[str] = field(default_factory=list)

    def move_to(self, new_ip: str, seen_at: datetime) -> str:
        """
        Record a move to new_ip and return the address that was left.
        """
        old_ip = self.ip
        if old_ip not in self.previous_ips:
            self.previous_ips.append(old_ip)
        if new_ip in self.previous_ips:
            self.previous_ips.remove(new_ip)
        self.ip = new_ip
        self.last_seen = seen_at
        return old_ip


@dataclass
class Alert:
    """An immutable alert raised during reconciliation."""
    job_id: str
    job_name: str
    type: AlertType
    level: AlertLevel
    title: str
    message: str
    device_data: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=now_utc)
    acknowledged: bool = False


@dataclass
class ScanResult:
    """One record per job execution, written on success and on failure."""
    job_id: str
    devices_found: int = 0
    new_devices: int = 0
    execution_time_ms: int = 0
    status: ScanStatus = ScanStatus.SUCCESS
    error_message: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=now_utc)


@dataclass
class ScanOutcome:
    """What the scan executor returns for one scan_network() call."""
    devices: list[DiscoveredDevice] = field(default_factory=list)
    execution_time_ms: int = 0
    status: ScanStatus = ScanStatus.SUCCESS
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ScanStatus.SUCCESS
