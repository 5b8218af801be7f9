"""
Job policy models.

Jobs are created and edited by the API layer; the scan pipeline only
reads them. Validation here guards the scheduler against policies it
cannot run (zero frequency, nothing to scan, malformed subnets).
"""

import ipaddress
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._types import AlertLevel, normalize_mac


class AlertPolicy(BaseModel):
    """Which inventory changes raise alerts for a job, and at what level."""

    model_config = ConfigDict(populate_by_name=True)

    new_device_alert: bool = Field(
        default=False,
        alias="newDeviceAlert",
        description="Alert when a never-seen MAC appears"
    )
    ip_change_alert: bool = Field(
        default=False,
        alias="ipChangeAlert",
        description="Alert when a known MAC shows up on a different IP"
    )
    unauthorized_device_alert: bool = Field(
        default=False,
        alias="unauthorizedDeviceAlert",
        description="Alert when a new MAC is not on the authorized list"
    )
    alert_level: Optional[AlertLevel] = Field(
        default=None,
        alias="alertLevel",
        description="Default severity for new_device and ip_change alerts"
    )

    @property
    def default_level(self) -> AlertLevel:
        return self.alert_level or AlertLevel.WARNING


class Job(BaseModel):
    """A schedulable monitoring policy."""

    id: str = Field(..., description="Job identifier")
    name: str = Field(..., description="Display name, copied onto alerts")
    description: Optional[str] = Field(default=None)

    interfaces: List[str] = Field(
        ...,
        min_length=1,
        description="Network interfaces to scan from"
    )
    subnets: List[str] = Field(
        ...,
        min_length=1,
        description="Subnets to probe, as CIDR strings"
    )
    authorized_macs: List[str] = Field(
        default_factory=list,
        description="Pre-authorized hardware addresses"
    )

    frequency: int = Field(
        ...,
        ge=1,
        description="Run every N minutes"
    )
    is_active: bool = Field(default=True)

    alert_config: AlertPolicy = Field(default_factory=AlertPolicy)

    last_run: Optional[datetime] = Field(default=None)
    next_run: Optional[datetime] = Field(default=None)

    @field_validator("subnets")
    @classmethod
    def validate_subnets(cls, v: List[str]) -> List[str]:
        """Every subnet must parse as an IPv4 network."""
        for subnet in v:
            try:
                ipaddress.IPv4Network(subnet, strict=False)
            except ValueError as e:
                raise ValueError(f"Invalid subnet {subnet!r}: {e}")
        return v

    @field_validator("interfaces")
    @classmethod
    def validate_interfaces(cls, v: List[str]) -> List[str]:
        if any(not iface.strip() for iface in v):
            raise ValueError("Interface names must not be blank")
        return [iface.strip() for iface in v]

    @field_validator("authorized_macs")
    @classmethod
    def normalize_authorized_macs(cls, v: List[str]) -> List[str]:
        return [normalize_mac(mac) for mac in v if mac.strip()]

    def is_authorized(self, mac: str) -> bool:
        """Check a MAC against this job's authorized list."""
        return normalize_mac(mac) in self.authorized_macs
