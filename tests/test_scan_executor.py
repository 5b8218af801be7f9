"""Tests for the scan executor."""

import asyncio

import pytest

from arp_monitor._types import DiscoveredDevice, ScanStatus
from arp_monitor.exceptions import InvocationFailure, ParseFailure, ScanInProgress
from arp_monitor.scan_executor import ScanExecutor


class TestScanIteration:
    """Tests for subnet x interface iteration."""

    @pytest.mark.asyncio
    async def test_subnets_outer_interfaces_inner(self, make_invoker):
        """Should invoke every pair, subnets in the outer loop."""
        invoker = make_invoker()
        executor = ScanExecutor(invoker)

        outcome = await executor.scan_network(
            ["eth0", "eth1"], ["10.0.0.0/24", "10.0.1.0/24"], timeout_seconds=15
        )

        assert outcome.status == ScanStatus.SUCCESS
        assert invoker.calls == [
            ("eth0", "10.0.0.0/24", 15),
            ("eth1", "10.0.0.0/24", 15),
            ("eth0", "10.0.1.0/24", 15),
            ("eth1", "10.0.1.0/24", 15),
        ]

    @pytest.mark.asyncio
    async def test_aggregates_devices(self, make_invoker):
        """Should collect devices from every invocation."""
        invoker = make_invoker(outputs={
            ("eth0", "10.0.0.0/24"): "10.0.0.5\taa:bb:cc:dd:ee:ff\tAcme\n",
            ("eth0", "10.0.1.0/24"): "10.0.1.7\t11:22:33:44:55:66\t\n",
        })
        executor = ScanExecutor(invoker)

        outcome = await executor.scan_network(["eth0"], ["10.0.0.0/24", "10.0.1.0/24"])

        assert outcome.devices == [
            DiscoveredDevice(ip="10.0.0.5", mac="aa:bb:cc:dd:ee:ff", vendor="Acme"),
            DiscoveredDevice(ip="10.0.1.7", mac="11:22:33:44:55:66", vendor="Unknown"),
        ]
        assert outcome.error is None
        assert outcome.execution_time_ms >= 0


class TestDeduplication:
    """Tests for MAC deduplication."""

    @pytest.mark.asyncio
    async def test_keeps_first_occurrence(self, make_invoker):
        """Should keep only the first record for a MAC."""
        invoker = make_invoker(outputs={
            ("eth0", "10.0.0.0/24"): "10.0.0.5\taa:bb:cc:dd:ee:ff\tFirst\n",
            ("eth1", "10.0.0.0/24"): (
                "10.0.0.77\taa:bb:cc:dd:ee:ff\tSecond\n"
                "10.0.0.9\t11:22:33:44:55:66\tOther\n"
            ),
        })
        executor = ScanExecutor(invoker)

        outcome = await executor.scan_network(["eth0", "eth1"], ["10.0.0.0/24"])

        assert [d.ip for d in outcome.devices] == ["10.0.0.5", "10.0.0.9"]
        assert outcome.devices[0].vendor == "First"

    def test_dedupe_by_mac(self, make_invoker):
        """Should deduplicate a flat list by MAC."""
        executor = ScanExecutor(make_invoker())
        devices = [
            DiscoveredDevice(ip="10.0.0.1", mac="aa:bb:cc:dd:ee:ff"),
            DiscoveredDevice(ip="10.0.0.2", mac="aa:bb:cc:dd:ee:ff"),
        ]

        result = executor._dedupe_by_mac(devices)

        assert len(result) == 1
        assert result[0].ip == "10.0.0.1"


class TestScanFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_invocation_failure_aborts_scan(self, make_invoker):
        """Should turn a failed pair into an error outcome with no devices."""
        invoker = make_invoker(outputs={
            ("eth0", "10.0.0.0/24"): "10.0.0.5\taa:bb:cc:dd:ee:ff\tAcme\n",
            ("eth0", "10.0.1.0/24"): InvocationFailure("arp-scan failed: no such device"),
            ("eth0", "10.0.2.0/24"): "10.0.2.5\t11:22:33:44:55:66\tAcme\n",
        })
        executor = ScanExecutor(invoker)

        outcome = await executor.scan_network(
            ["eth0"], ["10.0.0.0/24", "10.0.1.0/24", "10.0.2.0/24"]
        )

        assert outcome.status == ScanStatus.ERROR
        assert outcome.devices == []
        assert "no such device" in outcome.error
        # Remaining pairs are not attempted
        assert len(invoker.calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_error(self, make_invoker):
        """Should report a timed out invocation as an error."""
        invoker = make_invoker(default=InvocationFailure(
            "arp-scan timed out after 30s on eth0 10.0.0.0/24", timed_out=True
        ))
        executor = ScanExecutor(invoker)

        outcome = await executor.scan_network(["eth0"], ["10.0.0.0/24"])

        assert outcome.status == ScanStatus.ERROR
        assert "timed out" in outcome.error

    @pytest.mark.asyncio
    async def test_parse_failure_is_error(self, make_invoker):
        """Should report unreadable output as an error."""
        executor = ScanExecutor(make_invoker(default=ParseFailure("not valid UTF-8")))

        outcome = await executor.scan_network(["eth0"], ["10.0.0.0/24"])

        assert outcome.status == ScanStatus.ERROR
        assert outcome.error == "not valid UTF-8"

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, make_invoker):
        """Should accept a new scan after a failed one."""
        invoker = make_invoker(default=InvocationFailure("boom"))
        executor = ScanExecutor(invoker)

        await executor.scan_network(["eth0"], ["10.0.0.0/24"])
        assert executor.is_scanning is False

        invoker.default = ""
        outcome = await executor.scan_network(["eth0"], ["10.0.0.0/24"])
        assert outcome.status == ScanStatus.SUCCESS


class TestSingleFlight:
    """Tests for the one-scan-at-a-time rule."""

    @pytest.mark.asyncio
    async def test_second_scan_rejected(self, make_invoker):
        """Should reject a concurrent scan without disturbing the first."""
        gate = asyncio.Event()
        invoker = make_invoker(
            default="10.0.0.5\taa:bb:cc:dd:ee:ff\tAcme\n",
            gate=gate,
        )
        executor = ScanExecutor(invoker)

        first = asyncio.create_task(executor.scan_network(["eth0"], ["10.0.0.0/24"]))
        await asyncio.sleep(0)
        assert executor.is_scanning is True

        with pytest.raises(ScanInProgress):
            await executor.scan_network(["eth1"], ["10.0.1.0/24"])

        # The rejected call never reached the invoker
        assert invoker.calls == [("eth0", "10.0.0.0/24", 30)]

        gate.set()
        outcome = await first

        assert outcome.status == ScanStatus.SUCCESS
        assert len(outcome.devices) == 1
        assert executor.is_scanning is False

    @pytest.mark.asyncio
    async def test_sequential_scans_allowed(self, make_invoker):
        """Should allow back-to-back scans."""
        executor = ScanExecutor(make_invoker())

        first = await executor.scan_network(["eth0"], ["10.0.0.0/24"])
        second = await executor.scan_network(["eth0"], ["10.0.0.0/24"])

        assert first.status == ScanStatus.SUCCESS
        assert second.status == ScanStatus.SUCCESS
