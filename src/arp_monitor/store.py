"""
Inventory store interface consumed by the scan pipeline.

Each method is expected to be atomic on its own; the pipeline never needs
a transaction spanning several calls. Implementations raise
PersistenceFailure when the backing store cannot be reached.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ._types import Alert, Device, ScanResult
from .models import Job


class InventoryStore(ABC):
    """Jobs, devices, alerts and scan results as the pipeline sees them."""

    # Jobs

    @abstractmethod
    def get_active_jobs(self) -> list[Job]:
        pass

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[Job]:
        pass

    @abstractmethod
    def update_job_run_times(
        self,
        job_id: str,
        last_run: datetime,
        next_run: Optional[datetime] = None,
    ) -> None:
        pass

    # Devices

    @abstractmethod
    def get_device_by_mac(self, mac: str) -> Optional[Device]:
        pass

    @abstractmethod
    def insert_device(self, device: Device) -> None:
        pass

    @abstractmethod
    def update_device(self, device: Device) -> None:
        """Persist ip, previous_ips and last_seen of an existing device."""
        pass

    # Alerts and results

    @abstractmethod
    def insert_alert(self, alert: Alert) -> None:
        pass

    @abstractmethod
    def insert_scan_result(self, result: ScanResult) -> None:
        pass
