"""
arp-scan output parsing.

Typical output:

    Interface: eth0, type: EN10MB, MAC: 00:11:22:33:44:55, IPv4: 10.0.0.2
    Starting arp-scan 1.10.0 with 256 hosts (https://github.com/royhills/arp-scan)
    10.0.0.1	aa:bb:cc:dd:ee:01	Cisco Systems, Inc
    10.0.0.9	11:22:33:44:55:66	(Unknown)

    3 packets received by filter, 0 packets dropped by kernel
    Ending arp-scan 1.10.0: 256 hosts scanned in 1.870 seconds (136.90 hosts/sec). 2 responded
"""

from __future__ import annotations

import re

from .._types import UNKNOWN_VENDOR, DiscoveredDevice

SKIP_PREFIXES = ("Interface:", "Starting arp-scan")
STATS_MARKER = "packets received"

DEVICE_LINE = re.compile(
    r"^(\d+\.\d+\.\d+\.\d+)\s+([0-9a-fA-F:]{17})(?:\s+(.*))?$"
)


def parse_arp_scan_output(output: str) -> list[DiscoveredDevice]:
    """
    Parse the text of one arp-scan run into device records.

    Banner, statistics and blank lines are skipped. Any other line that
    does not look like "<ip> <mac> <vendor>" is dropped.
    """
    devices = []

    for line in output.splitlines():
        if not line.strip():
            continue
        if line.startswith(SKIP_PREFIXES) or STATS_MARKER in line:
            continue

        match = DEVICE_LINE.match(line.rstrip())
        if not match:
            continue

        ip, mac, vendor = match.groups()
        devices.append(DiscoveredDevice(
            ip=ip,
            mac=mac.lower(),
            vendor=(vendor or "").strip() or UNKNOWN_VENDOR,
        ))

    return devices
