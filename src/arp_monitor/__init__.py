"""
ARP Monitor - scheduled host discovery and device inventory alerts.

Each monitoring job periodically runs arp-scan over its interfaces and
subnets. Discovered hosts are reconciled against an inventory keyed by
MAC address, and changes raise alerts:

    new_device           - a MAC never seen before
    ip_change            - a known MAC answered from a different IP
    unauthorized_device  - a new MAC that is not on the job's authorized list

Every job run, successful or not, leaves exactly one scan result.
"""

__version__ = "1.0.0"

from ._types import (
    Alert,
    AlertLevel,
    AlertType,
    Classification,
    Device,
    DiscoveredDevice,
    ScanOutcome,
    ScanResult,
    ScanStatus,
)
from .models import AlertPolicy, Job

__all__ = [
    "__version__",
    "Alert",
    "AlertLevel",
    "AlertType",
    "AlertPolicy",
    "Classification",
    "Device",
    "DiscoveredDevice",
    "Job",
    "ScanOutcome",
    "ScanResult",
    "ScanStatus",
]
