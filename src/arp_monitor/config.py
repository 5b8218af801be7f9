"""
ARP monitor configuration.

Jobs (what to scan and how often) live in the inventory database and are
managed by the API layer. This file only covers process-level settings:
where the database is, how discovery is invoked, and the control API.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass
class MonitorConfig:
    """ARP monitor process configuration."""

    # Database
    db_path: Path = field(default_factory=lambda: Path("/var/lib/arp-monitor/arp_monitoring.db"))

    # Discovery
    arp_scan_path: str = "arp-scan"
    arp_scan_arguments: list[str] = field(default_factory=list)
    scan_timeout_seconds: int = 30  # Per interface/subnet invocation

    # Scheduling
    maintenance_interval_seconds: int = 60

    # Control API (manual trigger, schedule/unschedule)
    enable_api: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = 8083

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Load configuration from environment variables."""
        config = cls()

        if db_path := os.getenv("DB_PATH"):
            config.db_path = Path(db_path)

        # Discovery
        config.arp_scan_path = os.getenv("ARP_SCAN_PATH", "arp-scan")
        if args := os.getenv("ARP_SCAN_ARGS"):
            config.arp_scan_arguments = args.split()
        config.scan_timeout_seconds = int(os.getenv("SCAN_TIMEOUT", "30"))

        # Scheduling
        config.maintenance_interval_seconds = int(os.getenv("MAINTENANCE_INTERVAL", "60"))

        # API server
        config.enable_api = os.getenv("ENABLE_API", "true").lower() == "true"
        config.api_host = os.getenv("API_HOST", "127.0.0.1")
        config.api_port = int(os.getenv("API_PORT", "8083"))

        # Logging
        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "MonitorConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "paths" in data:
            p = data["paths"]
            if "db" in p:
                config.db_path = Path(p["db"])

        if "discovery" in data:
            d = data["discovery"]
            config.arp_scan_path = d.get("arp_scan_path", "arp-scan")
            config.arp_scan_arguments = list(d.get("arp_scan_arguments", []))
            config.scan_timeout_seconds = d.get("timeout_seconds", 30)

        if "schedule" in data:
            s = data["schedule"]
            config.maintenance_interval_seconds = s.get("maintenance_interval_seconds", 60)

        if "api" in data:
            a = data["api"]
            config.enable_api = a.get("enabled", True)
            config.api_host = a.get("host", "127.0.0.1")
            config.api_port = a.get("port", 8083)

        config.log_level = data.get("log_level", "INFO")

        return config

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if self.scan_timeout_seconds <= 0:
            errors.append(f"Invalid scan timeout: {self.scan_timeout_seconds}")

        if self.maintenance_interval_seconds <= 0:
            errors.append(
                f"Invalid maintenance interval: {self.maintenance_interval_seconds}"
            )

        if not 0 < self.api_port < 65536:
            errors.append(f"Invalid API port: {self.api_port}")

        if not self.arp_scan_path:
            errors.append("No arp-scan path configured")

        return errors


# Example arp_monitor.yaml:
"""
# /etc/arp-monitor/arp_monitor.yaml

paths:
  db: "/var/lib/arp-monitor/arp_monitoring.db"

discovery:
  arp_scan_path: "/usr/sbin/arp-scan"
  arp_scan_arguments: ["--retry", "2"]
  timeout_seconds: 30

schedule:
  maintenance_interval_seconds: 60

api:
  enabled: true
  host: "127.0.0.1"
  port: 8083

log_level: "INFO"
"""
