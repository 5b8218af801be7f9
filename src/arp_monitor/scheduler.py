"""
Job scheduler.

Keeps one recurring timer per active job and a maintenance loop that
re-reads the active jobs every minute:

- job without a timer            -> start one at the job's frequency
- timer with the same frequency  -> leave it alone (countdown keeps running)
- timer with another frequency   -> cancel it and start a new one

The maintenance loop never removes timers. Whoever deactivates or deletes
a job calls unschedule_job() for it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ._types import now_utc
from .exceptions import JobNotFound, PersistenceFailure
from .job_runner import JobRunner, JobRunSummary
from .models import Job
from .store import InventoryStore

logger = logging.getLogger(__name__)


@dataclass
class ScheduledJob:
    """A registered recurring timer."""
    job_id: str
    frequency: int  # minutes
    task: asyncio.Task
    registered_at: datetime = field(default_factory=now_utc)


class ScheduleRegistry:
    """
    Map of job id -> timer.

    Owned by one JobScheduler. None of the methods await, so on a single
    event loop each call is atomic.
    """

    def __init__(self):
        self._entries: dict[str, ScheduledJob] = {}

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        return self._entries.get(job_id)

    def register(self, entry: ScheduledJob) -> None:
        self._entries[entry.job_id] = entry

    def unregister(self, job_id: str) -> Optional[ScheduledJob]:
        return self._entries.pop(job_id, None)

    def job_ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class JobScheduler:
    """
    Runs each active job every `frequency` minutes.

    Timers and the maintenance loop share the event loop. A firing starts
    the run as its own task, so a slow scan never delays the timer and
    cancelling a timer never interrupts a run already in progress.
    """

    def __init__(
        self,
        store: InventoryStore,
        runner: JobRunner,
        registry: Optional[ScheduleRegistry] = None,
        maintenance_interval_seconds: float = 60,
        minute_seconds: float = 60,
    ):
        """
        Initialize job scheduler.

        Args:
            store: Store the active jobs are read from
            runner: Pipeline invoked on every firing
            registry: Timer registry (a new one if not given)
            maintenance_interval_seconds: Period of the maintenance loop
            minute_seconds: Seconds in one frequency minute
        """
        self.store = store
        self.runner = runner
        self.registry = registry if registry is not None else ScheduleRegistry()
        self.maintenance_interval_seconds = maintenance_interval_seconds
        self.minute_seconds = minute_seconds

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._maintenance_task: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Schedule the active jobs and start the maintenance loop."""
        logger.info("Starting job scheduler")
        self._running = True
        self._shutdown_event.clear()

        self.reconcile_jobs()
        self._maintenance_task = asyncio.create_task(
            self._maintenance_loop(), name="scheduler-maintenance"
        )

    async def stop(self) -> None:
        """Cancel every timer and wait for runs in progress to finish."""
        logger.info("Stopping job scheduler")
        self._running = False
        self._shutdown_event.set()

        tasks = []
        if self._maintenance_task and not self._maintenance_task.done():
            self._maintenance_task.cancel()
            tasks.append(self._maintenance_task)

        for job_id in self.registry.job_ids():
            entry = self.registry.unregister(job_id)
            if entry and not entry.task.done():
                entry.task.cancel()
                tasks.append(entry.task)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._in_flight:
            logger.info(f"Waiting for {len(self._in_flight)} job runs to finish")
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

        logger.info("Job scheduler stopped")

    async def _maintenance_loop(self) -> None:
        """Re-read the active jobs every maintenance interval."""
        logger.info("Scheduler maintenance loop started")

        while self._running:
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.maintenance_interval_seconds,
                )
                break  # Shutdown requested
            except asyncio.TimeoutError:
                pass

            try:
                self.reconcile_jobs()
            except Exception as e:
                logger.error(f"Error in scheduler maintenance: {e}")

        logger.info("Scheduler maintenance loop stopped")

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def reconcile_jobs(self) -> int:
        """
        One maintenance pass over the active jobs.

        Returns:
            Number of timers started or replaced
        """
        try:
            jobs = self.store.get_active_jobs()
        except PersistenceFailure as e:
            logger.error(f"Error loading jobs for scheduling: {e}")
            return 0

        changed = 0
        for job in jobs:
            if self.schedule_job(job):
                changed += 1
        return changed

    def schedule_job(self, job: Job) -> bool:
        """
        Register a recurring timer for job.

        Returns:
            True if a timer was started, False if the existing one was kept
            or the job is inactive
        """
        if not job.is_active:
            logger.debug(f"Not scheduling inactive job {job.name}")
            return False

        existing = self.registry.get(job.id)
        if existing:
            if existing.frequency == job.frequency:
                return False

            existing.task.cancel()
            self.registry.unregister(job.id)
            logger.info(
                f"Rescheduling job {job.name}: frequency "
                f"{existing.frequency} -> {job.frequency} minutes"
            )

        interval = job.frequency * self.minute_seconds
        task = asyncio.create_task(
            self._timer_loop(job.id, interval),
            name=f"job-timer-{job.id}",
        )
        self.registry.register(ScheduledJob(
            job_id=job.id,
            frequency=job.frequency,
            task=task,
        ))
        logger.info(f"Scheduled job {job.name} with frequency {job.frequency} minutes")
        return True

    def unschedule_job(self, job_id: str) -> bool:
        """
        Cancel a job's timer. A run already in progress is left to finish.

        Returns:
            True if a timer was registered
        """
        entry = self.registry.unregister(job_id)
        if not entry:
            return False

        entry.task.cancel()
        logger.info(f"Unscheduled job {job_id}")
        return True

    def is_scheduled(self, job_id: str) -> bool:
        return job_id in self.registry

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _timer_loop(self, job_id: str, interval: float) -> None:
        """Start a run of job_id every interval seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            run = asyncio.create_task(self._fire(job_id), name=f"job-run-{job_id}")
            self._in_flight.add(run)
            run.add_done_callback(self._in_flight.discard)

    async def _fire(self, job_id: str) -> Optional[JobRunSummary]:
        """Timer callback: run the current version of the job."""
        try:
            job = self.store.get_job(job_id)
        except PersistenceFailure as e:
            logger.error(f"Could not load job {job_id} for execution: {e}")
            return None

        if job is None or not job.is_active:
            logger.warning(f"Job {job_id} is gone or inactive, skipping timer run")
            return None

        try:
            return await self.runner.run(job, triggered_by="schedule")
        except Exception as e:
            logger.error(f"Job {job.name} run failed: {e}")
            return None

    async def execute_job_manually(self, job_id: str) -> JobRunSummary:
        """
        Run a job once, now, outside its timer.

        The job's recurring timer (if any) keeps its countdown.

        Raises:
            JobNotFound: no job with this id
            PersistenceFailure: the job could not be loaded
        """
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)

        return await self.runner.run(job, triggered_by="manual")
