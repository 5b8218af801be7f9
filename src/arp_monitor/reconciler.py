"""
Device reconciliation.

Compares one discovered device against the stored inventory, applies the
matching transition and reports which alert events it produced:

    classification  inventory change                      events
    --------------  ------------------------------------  -------------------------------
    NEW             insert, authorized from job list      new_device [+ unauthorized_device]
    MOVED           old ip -> previous_ips, set new ip    ip_change
    UNCHANGED       refresh last_seen                     (none)

Authorization is only decided on NEW. Later observations never re-check
it, even if the job's authorized list has changed since.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from ._types import (
    AlertType,
    Classification,
    Device,
    DiscoveredDevice,
    normalize_mac,
    now_utc,
)
from .models import Job
from .store import InventoryStore

logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    """What happened to one discovered device."""
    classification: Classification
    discovered: DiscoveredDevice
    device: Device
    events: list[AlertType] = field(default_factory=list)
    previous_ip: Optional[str] = None  # Set on MOVED

    @property
    def is_new(self) -> bool:
        return self.classification == Classification.NEW


def classify(existing: Optional[Device], discovered: DiscoveredDevice) -> Classification:
    """Pick the transition for a discovered device."""
    if existing is None:
        return Classification.NEW
    if existing.ip != discovered.ip:
        return Classification.MOVED
    return Classification.UNCHANGED


class DeviceReconciler:
    """Applies reconciliation transitions to the inventory store."""

    def __init__(self, store: InventoryStore):
        self.store = store

    def reconcile(self, job: Job, discovered: DiscoveredDevice) -> Reconciliation:
        """
        Classify a discovered device and update the inventory.

        Args:
            job: Job whose authorized list decides authorization of new devices
            discovered: Device reported by the scan

        Returns:
            Reconciliation with the applied classification and its events
        """
        discovered = replace(discovered, mac=normalize_mac(discovered.mac))
        existing = self.store.get_device_by_mac(discovered.mac)
        classification = classify(existing, discovered)
        seen_at = now_utc()

        if classification == Classification.NEW:
            return self._add_device(job, discovered, seen_at)
        if classification == Classification.MOVED:
            return self._move_device(existing, discovered, seen_at)
        return self._touch_device(existing, discovered, seen_at)

    def _add_device(
        self,
        job: Job,
        discovered: DiscoveredDevice,
        seen_at: datetime,
    ) -> Reconciliation:
        is_authorized = job.is_authorized(discovered.mac)
        device = Device(
            mac=discovered.mac,
            ip=discovered.ip,
            vendor=discovered.vendor,
            first_seen=seen_at,
            last_seen=seen_at,
            is_authorized=is_authorized,
        )
        self.store.insert_device(device)

        events = [AlertType.NEW_DEVICE]
        if not is_authorized:
            events.append(AlertType.UNAUTHORIZED_DEVICE)

        logger.info(
            f"New device {discovered.mac} at {discovered.ip} "
            f"({'authorized' if is_authorized else 'unauthorized'})"
        )
        return Reconciliation(
            classification=Classification.NEW,
            discovered=discovered,
            device=device,
            events=events,
        )

    def _move_device(
        self,
        device: Device,
        discovered: DiscoveredDevice,
        seen_at: datetime,
    ) -> Reconciliation:
        old_ip = device.move_to(discovered.ip, seen_at)
        self.store.update_device(device)

        logger.info(f"Device {device.mac} moved from {old_ip} to {device.ip}")
        return Reconciliation(
            classification=Classification.MOVED,
            discovered=discovered,
            device=device,
            events=[AlertType.IP_CHANGE],
            previous_ip=old_ip,
        )

    def _touch_device(
        self,
        device: Device,
        discovered: DiscoveredDevice,
        seen_at: datetime,
    ) -> Reconciliation:
        device.last_seen = seen_at
        self.store.update_device(device)

        return Reconciliation(
            classification=Classification.UNCHANGED,
            discovered=discovered,
            device=device,
        )
