"""
Active ARP scanning using arp-scan.

Requires arp-scan installed and enough privilege to open a raw socket
on the scanned interface.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..exceptions import InvocationFailure, ParseFailure
from .base import DiscoveryInvoker

logger = logging.getLogger(__name__)


class ArpScanInvoker(DiscoveryInvoker):
    """
    Run arp-scan for one interface/subnet pair.

    Each call is bounded by its own deadline. When the deadline passes the
    child is killed and the call fails; a late exit of the killed child is
    never reported as a result.
    """

    def __init__(
        self,
        binary: str = "arp-scan",
        extra_args: Optional[list[str]] = None,
    ):
        """
        Initialize arp-scan invoker.

        Args:
            binary: Path or name of the arp-scan executable
            extra_args: Additional arguments placed before the target
        """
        self.binary = binary
        self.extra_args = list(extra_args or [])

    @property
    def name(self) -> str:
        return "arp-scan"

    def build_command(self, interface: str, subnet: str) -> list[str]:
        return [self.binary, "--interface", interface, *self.extra_args, subnet]

    async def is_available(self) -> bool:
        """Check if arp-scan is available."""
        try:
            result = await asyncio.create_subprocess_exec(
                "which", self.binary,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            await result.wait()
            return result.returncode == 0
        except OSError:
            return False

    async def invoke(self, interface: str, subnet: str, timeout: float) -> str:
        """
        Run arp-scan and return its stdout.

        Raises:
            InvocationFailure: spawn error, non-zero exit, or timeout
            ParseFailure: output is not valid UTF-8
        """
        cmd = self.build_command(interface, subnet)
        logger.debug(f"Running {' '.join(cmd)} (timeout={timeout}s)")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to start arp-scan: {e}")
            raise InvocationFailure(
                f"Failed to execute arp-scan: {e}", cmd=cmd
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            logger.error(f"arp-scan timed out after {timeout}s on {interface} {subnet}")
            raise InvocationFailure(
                f"arp-scan timed out after {timeout}s on {interface} {subnet}",
                cmd=cmd,
                timed_out=True,
            )

        err_text = stderr.decode("utf-8", errors="replace").strip() if stderr else ""
        if proc.returncode != 0:
            logger.error(f"arp-scan exited with code {proc.returncode}: {err_text}")
            raise InvocationFailure(
                f"arp-scan failed: {err_text or f'exit code {proc.returncode}'}",
                cmd=cmd,
                exit_code=proc.returncode,
                stderr=err_text,
            )

        try:
            return stdout.decode("utf-8") if stdout else ""
        except UnicodeDecodeError as e:
            raise ParseFailure(f"arp-scan output is not valid UTF-8: {e}") from e

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Kill a child that overran its deadline and reap it."""
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
