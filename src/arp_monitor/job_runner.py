"""
Job execution pipeline.

One run of a job: scan its subnets, reconcile every discovered device,
raise alerts and record a single ScanResult. Both the scheduler timers
and manual triggers go through JobRunner.run().
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from ._types import Alert, ScanResult, ScanStatus, now_utc
from .alerts import AlertEmitter
from .exceptions import PersistenceFailure, ScanInProgress
from .models import Job
from .reconciler import DeviceReconciler
from .recorder import ResultRecorder
from .scan_executor import ScanExecutor
from .store import InventoryStore

logger = logging.getLogger(__name__)


@dataclass
class JobRunSummary:
    """What one job execution produced."""
    job_id: str
    result: Optional[ScanResult]  # None only if the result could not be stored
    alerts: list[Alert] = field(default_factory=list)
    triggered_by: str = "schedule"

    @property
    def status(self) -> ScanStatus:
        return self.result.status if self.result else ScanStatus.ERROR


class JobRunner:
    """
    Runs the scan pipeline for a job.

    run() never raises: every failure ends up as an error-status
    ScanResult so the job's execution history has no gaps.
    """

    def __init__(
        self,
        store: InventoryStore,
        executor: ScanExecutor,
        scan_timeout_seconds: float = 30,
    ):
        self.store = store
        self.executor = executor
        self.scan_timeout_seconds = scan_timeout_seconds
        self.reconciler = DeviceReconciler(store)
        self.emitter = AlertEmitter(store)
        self.recorder = ResultRecorder(store)

    async def run(self, job: Job, triggered_by: str = "schedule") -> JobRunSummary:
        """
        Execute one run of job.

        Args:
            job: Job to run
            triggered_by: schedule or manual, for logging

        Returns:
            JobRunSummary with the stored ScanResult and the alerts raised
        """
        started = time.monotonic()
        logger.info(f"Executing job: {job.name} (id={job.id}, triggered_by={triggered_by})")

        self._mark_run(job)

        alerts: list[Alert] = []
        new_count = 0

        try:
            outcome = await self.executor.scan_network(
                job.interfaces,
                job.subnets,
                self.scan_timeout_seconds,
            )

            if outcome.succeeded:
                for discovered in outcome.devices:
                    try:
                        reconciliation = self.reconciler.reconcile(job, discovered)
                    except PersistenceFailure as e:
                        logger.error(f"Error processing device {discovered.mac}: {e}")
                        continue

                    if reconciliation.is_new:
                        new_count += 1

                    try:
                        alerts.extend(self.emitter.emit(job, reconciliation))
                    except PersistenceFailure as e:
                        logger.error(f"Error creating alerts for {discovered.mac}: {e}")

        except ScanInProgress as e:
            logger.warning(f"Job {job.name} skipped: {e}")
            result = self._record_failure(job, str(e), started)
            return JobRunSummary(job.id, result, alerts, triggered_by)
        except Exception as e:
            logger.error(f"Job {job.name} failed: {e}")
            result = self._record_failure(job, str(e), started)
            return JobRunSummary(job.id, result, alerts, triggered_by)

        try:
            result = self.recorder.record(
                job.id, outcome, new_count, self._elapsed_ms(started)
            )
        except PersistenceFailure as e:
            logger.error(f"Could not record scan result for job {job.name}: {e}")
            result = None

        if outcome.succeeded:
            logger.info(
                f"Job {job.name} completed: {len(outcome.devices)} devices found, "
                f"{new_count} new, {len(alerts)} alerts generated"
            )
        else:
            logger.error(f"Job {job.name} failed: {outcome.error}")
        return JobRunSummary(job.id, result, alerts, triggered_by)

    def _mark_run(self, job: Job) -> None:
        """Store last_run/next_run. A store error does not stop the run."""
        ran_at = now_utc()
        try:
            self.store.update_job_run_times(
                job.id,
                last_run=ran_at,
                next_run=ran_at + timedelta(minutes=job.frequency),
            )
        except PersistenceFailure as e:
            logger.error(f"Could not update last run for job {job.name}: {e}")

    def _record_failure(self, job: Job, error: str, started: float) -> Optional[ScanResult]:
        try:
            return self.recorder.record_failure(job.id, error, self._elapsed_ms(started))
        except PersistenceFailure as e:
            logger.error(f"Could not record failed scan for job {job.name}: {e}")
            return None

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
