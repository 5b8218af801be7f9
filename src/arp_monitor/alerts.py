"""
Alert emission.

Turns reconciliation events into persisted alerts, gated by the job's
alert policy.
"""

from __future__ import annotations

import logging

from ._types import Alert, AlertLevel, AlertType
from .models import Job
from .reconciler import Reconciliation
from .store import InventoryStore

logger = logging.getLogger(__name__)


TITLES = {
    AlertType.NEW_DEVICE: "New Device Detected",
    AlertType.IP_CHANGE: "Device IP Changed",
    AlertType.UNAUTHORIZED_DEVICE: "Unauthorized Device",
}


def is_enabled(job: Job, alert_type: AlertType) -> bool:
    """Check whether the job's policy wants alerts of this type."""
    policy = job.alert_config
    if alert_type == AlertType.NEW_DEVICE:
        return policy.new_device_alert
    if alert_type == AlertType.IP_CHANGE:
        return policy.ip_change_alert
    if alert_type == AlertType.UNAUTHORIZED_DEVICE:
        return policy.unauthorized_device_alert
    return False


def alert_level(job: Job, alert_type: AlertType, reconciliation: Reconciliation) -> AlertLevel:
    """Severity for an alert of this type on this device."""
    if alert_type == AlertType.UNAUTHORIZED_DEVICE:
        return AlertLevel.CRITICAL
    if alert_type == AlertType.NEW_DEVICE and reconciliation.device.is_authorized:
        return AlertLevel.INFO
    return job.alert_config.default_level


def alert_message(alert_type: AlertType, reconciliation: Reconciliation) -> str:
    d = reconciliation.discovered
    if alert_type == AlertType.NEW_DEVICE:
        return f"New device {d.vendor} ({d.mac}) found at {d.ip}"
    if alert_type == AlertType.IP_CHANGE:
        return (
            f"Device {d.vendor} ({d.mac}) changed IP from "
            f"{reconciliation.previous_ip} to {d.ip}"
        )
    return f"Unauthorized device {d.vendor} ({d.mac}) detected at {d.ip}"


class AlertEmitter:
    """Builds and stores alerts for reconciliation events."""

    def __init__(self, store: InventoryStore):
        self.store = store

    def emit(self, job: Job, reconciliation: Reconciliation) -> list[Alert]:
        """
        Create an alert for every event the job's policy enables.

        Returns:
            The alerts that were persisted, in event order
        """
        alerts = []

        for alert_type in reconciliation.events:
            if not is_enabled(job, alert_type):
                continue

            alert = Alert(
                job_id=job.id,
                job_name=job.name,
                type=alert_type,
                level=alert_level(job, alert_type, reconciliation),
                title=TITLES[alert_type],
                message=alert_message(alert_type, reconciliation),
                device_data=reconciliation.discovered.to_dict(),
            )
            self.store.insert_alert(alert)
            logger.info(f"Alert created: {alert.title} [{alert.level.value}] {alert.message}")
            alerts.append(alert)

        return alerts
