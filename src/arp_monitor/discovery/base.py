"""
Base class for discovery invokers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class DiscoveryInvoker(ABC):
    """
    Runs one host discovery probe for an (interface, subnet) pair.

    Implementations return the raw text listing and raise
    InvocationFailure when the probe cannot complete.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this discovery tool."""
        pass

    @abstractmethod
    async def invoke(self, interface: str, subnet: str, timeout: float) -> str:
        """
        Probe subnet from interface, giving up after timeout seconds.

        Returns the tool's raw stdout.
        """
        pass

    async def is_available(self) -> bool:
        """Check if this discovery tool can be run on this host."""
        return True
