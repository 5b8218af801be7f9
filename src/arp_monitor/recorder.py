"""
Scan result recording.
"""

from __future__ import annotations

import logging

from ._types import ScanOutcome, ScanResult, ScanStatus
from .store import InventoryStore

logger = logging.getLogger(__name__)


class ResultRecorder:
    """Writes the single ScanResult of each job execution."""

    def __init__(self, store: InventoryStore):
        self.store = store

    def record(
        self,
        job_id: str,
        outcome: ScanOutcome,
        new_devices: int,
        execution_time_ms: int,
    ) -> ScanResult:
        """Record a scan that returned an outcome, successful or not."""
        if not outcome.succeeded:
            return self.record_failure(job_id, outcome.error or "Scan failed", execution_time_ms)

        result = ScanResult(
            job_id=job_id,
            devices_found=len(outcome.devices),
            new_devices=new_devices,
            execution_time_ms=execution_time_ms,
            status=ScanStatus.SUCCESS,
        )
        self.store.insert_scan_result(result)
        return result

    def record_failure(
        self,
        job_id: str,
        error: str,
        execution_time_ms: int,
    ) -> ScanResult:
        """Record an execution that failed before or during the scan."""
        result = ScanResult(
            job_id=job_id,
            devices_found=0,
            new_devices=0,
            execution_time_ms=execution_time_ms,
            status=ScanStatus.ERROR,
            error_message=error,
        )
        self.store.insert_scan_result(result)
        return result
