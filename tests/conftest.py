"""Shared fixtures for ARP monitor tests."""

import tempfile
from pathlib import Path

import pytest

from arp_monitor.discovery import DiscoveryInvoker
from arp_monitor.inventory_db import InventoryDatabase
from arp_monitor.models import AlertPolicy, Job


class FakeInvoker(DiscoveryInvoker):
    """
    Discovery invoker returning canned arp-scan text.

    outputs maps (interface, subnet) to either a string or an exception
    to raise. If gate is set, every call waits on it before answering.
    """

    def __init__(self, outputs=None, default="", gate=None):
        self.outputs = dict(outputs or {})
        self.default = default
        self.gate = gate
        self.calls = []

    @property
    def name(self) -> str:
        return "fake"

    async def invoke(self, interface: str, subnet: str, timeout: float) -> str:
        self.calls.append((interface, subnet, timeout))
        if self.gate is not None:
            await self.gate.wait()
        result = self.outputs.get((interface, subnet), self.default)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    database = InventoryDatabase(db_path)
    yield database

    # Cleanup
    db_path.unlink(missing_ok=True)
    db_path.with_suffix(".db-wal").unlink(missing_ok=True)
    db_path.with_suffix(".db-shm").unlink(missing_ok=True)


@pytest.fixture
def make_invoker():
    """Factory for FakeInvoker instances."""
    return FakeInvoker


@pytest.fixture
def job():
    """Job from the reference scenario: one authorized MAC, new/unauthorized alerts on."""
    return Job(
        id="job-1",
        name="Office LAN",
        interfaces=["eth0"],
        subnets=["10.0.0.0/24"],
        authorized_macs=["aa:bb:cc:dd:ee:ff"],
        frequency=5,
        alert_config=AlertPolicy(
            new_device_alert=True,
            unauthorized_device_alert=True,
        ),
    )
