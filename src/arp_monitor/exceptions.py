"""
Exceptions raised by the scan pipeline.
"""

from typing import Optional


class MonitorError(Exception):
    """Base exception for ARP monitor errors."""
    pass


class ScanInProgress(MonitorError):
    """A scan is already running on this executor. Retry next cycle."""

    def __init__(self, message: str = "Scan already in progress"):
        super().__init__(message)


class InvocationFailure(MonitorError):
    """The discovery tool could not be run, exited non-zero, or timed out."""

    def __init__(
        self,
        message: str,
        cmd: Optional[list] = None,
        exit_code: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.cmd = cmd
        self.exit_code = exit_code
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)


class ParseFailure(MonitorError):
    """Discovery output could not be read."""
    pass


class PersistenceFailure(MonitorError):
    """The inventory store is unavailable or rejected an operation."""
    pass


class JobNotFound(MonitorError):
    """No job exists with the requested id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")
