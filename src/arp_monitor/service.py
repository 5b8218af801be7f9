"""
ARP Monitor Service - process entry point.

Wires the inventory database, the arp-scan invoker, the scan pipeline and
the job scheduler together, and exposes a small control API for manual
runs and schedule changes.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web

from .config import MonitorConfig
from .discovery import ArpScanInvoker
from .exceptions import JobNotFound
from .inventory_db import InventoryDatabase
from .job_runner import JobRunner, JobRunSummary
from .scan_executor import ScanExecutor
from .scheduler import JobScheduler

logger = logging.getLogger(__name__)


def _summary_to_json(summary: JobRunSummary) -> dict:
    result = summary.result
    return {
        "job_id": summary.job_id,
        "status": summary.status.value,
        "triggered_by": summary.triggered_by,
        "result": {
            "id": result.id,
            "devices_found": result.devices_found,
            "new_devices": result.new_devices,
            "execution_time": result.execution_time_ms,
            "error_message": result.error_message,
            "timestamp": result.timestamp.isoformat(),
        } if result else None,
        "alerts": [
            {
                "id": a.id,
                "type": a.type.value,
                "level": a.level.value,
                "title": a.title,
                "message": a.message,
            }
            for a in summary.alerts
        ],
    }


class MonitorService:
    """
    Main ARP monitor service.

    Owns the single scan executor, so all jobs share one single-flight
    scan slot.
    """

    def __init__(self, config: MonitorConfig):
        """
        Initialize monitor service.

        Args:
            config: Monitor configuration
        """
        self.config = config
        self.db = InventoryDatabase(config.db_path)
        self.invoker = ArpScanInvoker(
            binary=config.arp_scan_path,
            extra_args=config.arp_scan_arguments,
        )
        self.executor = ScanExecutor(self.invoker)
        self.runner = JobRunner(
            self.db,
            self.executor,
            scan_timeout_seconds=config.scan_timeout_seconds,
        )
        self.scheduler = JobScheduler(
            self.db,
            self.runner,
            maintenance_interval_seconds=config.maintenance_interval_seconds,
        )
        self._shutdown_event = asyncio.Event()
        self._stop_task: Optional[asyncio.Task] = None

        # API server for manual runs and schedule changes
        self._api_app: Optional[web.Application] = None
        self._api_runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        """Start the monitor and block until stop() is called."""
        logger.info("Starting ARP Monitor Service")

        if not await self.invoker.is_available():
            logger.warning(f"{self.config.arp_scan_path} not found, scans will fail")

        await self.scheduler.start()

        if self.config.enable_api:
            await self._start_api_server()

        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """
        Stop the monitor.

        Every call waits for the same shutdown, so a second caller does not
        return while job runs from the first are still finishing.
        """
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self._shutdown())
        await asyncio.shield(self._stop_task)

    async def _shutdown(self) -> None:
        logger.info("Stopping ARP Monitor Service")
        self._shutdown_event.set()

        if self.scheduler.running:
            await self.scheduler.stop()

        if self._api_runner:
            await self._api_runner.cleanup()
            self._api_runner = None

    def build_api_app(self) -> web.Application:
        """Create the control API application."""
        app = web.Application()
        app.router.add_post("/api/jobs/{job_id}/run", self._handle_run_job)
        app.router.add_post("/api/jobs/{job_id}/schedule", self._handle_schedule_job)
        app.router.add_delete("/api/jobs/{job_id}/schedule", self._handle_unschedule_job)
        app.router.add_get("/api/health", self._handle_health)
        return app

    async def _start_api_server(self) -> None:
        """Start API server."""
        self._api_app = self.build_api_app()
        self._api_runner = web.AppRunner(self._api_app)
        await self._api_runner.setup()
        site = web.TCPSite(self._api_runner, self.config.api_host, self.config.api_port)
        await site.start()
        logger.info(f"API server started on {self.config.api_host}:{self.config.api_port}")

    # -------------------------------------------------------------------------
    # API Handlers
    # -------------------------------------------------------------------------

    async def _handle_run_job(self, request: web.Request) -> web.Response:
        """Handle POST /api/jobs/{job_id}/run."""
        job_id = request.match_info["job_id"]
        try:
            summary = await self.scheduler.execute_job_manually(job_id)
            return web.json_response(_summary_to_json(summary))

        except JobNotFound as e:
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=404,
            )
        except Exception as e:
            logger.error(f"Manual job execution failed: {e}")
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500,
            )

    async def _handle_schedule_job(self, request: web.Request) -> web.Response:
        """Handle POST /api/jobs/{job_id}/schedule."""
        job_id = request.match_info["job_id"]
        try:
            job = self.db.get_job(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if not job.is_active:
                return web.json_response(
                    {"status": "error", "message": f"Job {job_id} is not active"},
                    status=409,
                )

            changed = self.scheduler.schedule_job(job)
            return web.json_response({
                "status": "ok",
                "scheduled": True,
                "changed": changed,
                "frequency": job.frequency,
            })

        except JobNotFound as e:
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=404,
            )
        except Exception as e:
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500,
            )

    async def _handle_unschedule_job(self, request: web.Request) -> web.Response:
        """Handle DELETE /api/jobs/{job_id}/schedule."""
        job_id = request.match_info["job_id"]
        removed = self.scheduler.unschedule_job(job_id)
        return web.json_response({"status": "ok", "unscheduled": removed})

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /api/health."""
        try:
            devices = self.db.count_devices()
        except Exception as e:
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=503,
            )

        return web.json_response({
            "status": "ok",
            "service": "arp-monitor",
            "devices": devices,
            "scheduled_jobs": len(self.scheduler.registry),
            "scan_in_progress": self.executor.is_scanning,
        })


def main():
    """Entry point for arp-monitor service."""
    import argparse

    parser = argparse.ArgumentParser(description="ARP Monitor Service")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--host", type=str, help="API host")
    parser.add_argument("--port", type=int, help="API port")
    parser.add_argument("--log-level", type=str, default="INFO", help="Log level")
    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Load configuration
    if args.config:
        config = MonitorConfig.from_yaml(Path(args.config))
    else:
        config = MonitorConfig.from_env()

    # Override with CLI args
    if args.host:
        config.api_host = args.host
    if args.port:
        config.api_port = args.port
    config.log_level = args.log_level

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    service = MonitorService(config)

    def signal_handler():
        logger.info("Received shutdown signal")
        loop.create_task(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        loop.run_until_complete(service.stop())
        loop.close()


if __name__ == "__main__":
    main()
