"""
Scan executor.

Runs the discovery tool for every subnet x interface pair of a job and
aggregates the results. One executor allows only one scan in flight at a
time, across all jobs: a second caller is rejected, not queued.
"""

from __future__ import annotations

import asyncio
import logging
import time

from ._types import DiscoveredDevice, ScanOutcome, ScanStatus
from .discovery import DiscoveryInvoker, parse_arp_scan_output
from .exceptions import ScanInProgress

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class ScanExecutor:
    """
    Single-flight scan executor.

    The lock is process-wide for this instance, so scans of different
    jobs are serialized too.
    """

    def __init__(self, invoker: DiscoveryInvoker):
        self.invoker = invoker
        self._lock = asyncio.Lock()

    @property
    def is_scanning(self) -> bool:
        return self._lock.locked()

    async def scan_network(
        self,
        interfaces: list[str],
        subnets: list[str],
        timeout_seconds: float = 30,
    ) -> ScanOutcome:
        """
        Scan every subnet on every interface.

        A failure on any pair fails the whole scan; the returned outcome
        then carries status=error and no devices.

        Raises:
            ScanInProgress: another scan is running on this executor
        """
        if self._lock.locked():
            raise ScanInProgress()

        async with self._lock:
            started = time.monotonic()
            try:
                devices: list[DiscoveredDevice] = []

                for subnet in subnets:
                    for iface in interfaces:
                        logger.info(f"Scanning subnet {subnet} on interface {iface}")
                        output = await self.invoker.invoke(iface, subnet, timeout_seconds)
                        devices.extend(parse_arp_scan_output(output))

                unique_devices = self._dedupe_by_mac(devices)
                execution_time_ms = _elapsed_ms(started)
                logger.info(
                    f"Scan completed in {execution_time_ms}ms, "
                    f"found {len(unique_devices)} devices"
                )

                return ScanOutcome(
                    devices=unique_devices,
                    execution_time_ms=execution_time_ms,
                    status=ScanStatus.SUCCESS,
                )

            except Exception as e:
                logger.error(f"Scan failed: {e}")
                return ScanOutcome(
                    devices=[],
                    execution_time_ms=_elapsed_ms(started),
                    status=ScanStatus.ERROR,
                    error=str(e),
                )

    def _dedupe_by_mac(
        self,
        devices: list[DiscoveredDevice],
    ) -> list[DiscoveredDevice]:
        """Deduplicate devices by MAC, keeping the first one seen."""
        by_mac: dict[str, DiscoveredDevice] = {}

        for device in devices:
            if device.mac not in by_mac:
                by_mac[device.mac] = device

        return list(by_mac.values())
