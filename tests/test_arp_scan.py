"""Tests for the arp-scan invoker."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from arp_monitor.discovery import ArpScanInvoker
from arp_monitor.exceptions import InvocationFailure, ParseFailure


def make_process(stdout=b"", stderr=b"", returncode=0):
    """Create a mock asyncio subprocess."""
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    proc.kill = MagicMock()
    proc.returncode = returncode
    return proc


class TestBuildCommand:
    """Tests for command construction."""

    def test_default_command(self):
        """Should scan the subnet on the given interface."""
        invoker = ArpScanInvoker()

        cmd = invoker.build_command("eth0", "192.168.1.0/24")

        assert cmd == ["arp-scan", "--interface", "eth0", "192.168.1.0/24"]

    def test_extra_arguments(self):
        """Should place extra arguments before the target."""
        invoker = ArpScanInvoker(binary="/usr/sbin/arp-scan", extra_args=["--retry", "2"])

        cmd = invoker.build_command("eth1", "10.0.0.0/24")

        assert cmd == ["/usr/sbin/arp-scan", "--interface", "eth1", "--retry", "2", "10.0.0.0/24"]


class TestInvoke:
    """Tests for running arp-scan."""

    @pytest.mark.asyncio
    async def test_returns_stdout(self):
        """Should return decoded stdout on success."""
        proc = make_process(stdout=b"10.0.0.1\taa:bb:cc:dd:ee:ff\tAcme\n")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as spawn:
            output = await ArpScanInvoker().invoke("eth0", "10.0.0.0/24", timeout=5)

        assert output == "10.0.0.1\taa:bb:cc:dd:ee:ff\tAcme\n"
        assert spawn.call_args.args == ("arp-scan", "--interface", "eth0", "10.0.0.0/24")

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        """Should raise InvocationFailure on non-zero exit."""
        proc = make_process(stderr=b"ioctl: No such device\n", returncode=1)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(InvocationFailure) as exc_info:
                await ArpScanInvoker().invoke("eth9", "10.0.0.0/24", timeout=5)

        assert exc_info.value.exit_code == 1
        assert "No such device" in str(exc_info.value)
        assert exc_info.value.timed_out is False

    @pytest.mark.asyncio
    async def test_spawn_error(self):
        """Should raise InvocationFailure when arp-scan is missing."""
        spawn = AsyncMock(side_effect=FileNotFoundError("arp-scan"))

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(InvocationFailure) as exc_info:
                await ArpScanInvoker().invoke("eth0", "10.0.0.0/24", timeout=5)

        assert "Failed to execute arp-scan" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """Should kill the child and raise when the deadline passes."""
        async def hang():
            await asyncio.sleep(10)

        proc = make_process()
        proc.communicate = hang

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(InvocationFailure) as exc_info:
                await ArpScanInvoker().invoke("eth0", "10.0.0.0/24", timeout=0.01)

        assert exc_info.value.timed_out is True
        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_after_exit(self):
        """Should tolerate the child exiting just before the kill."""
        async def hang():
            await asyncio.sleep(10)

        proc = make_process()
        proc.communicate = hang
        proc.kill.side_effect = ProcessLookupError()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(InvocationFailure) as exc_info:
                await ArpScanInvoker().invoke("eth0", "10.0.0.0/24", timeout=0.01)

        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_undecodable_output(self):
        """Should raise ParseFailure for non UTF-8 output."""
        proc = make_process(stdout=b"\xff\xfe\xfa")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(ParseFailure):
                await ArpScanInvoker().invoke("eth0", "10.0.0.0/24", timeout=5)


class TestAvailability:
    """Tests for is_available."""

    @pytest.mark.asyncio
    async def test_available(self):
        proc = make_process(returncode=0)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            assert await ArpScanInvoker().is_available() is True

    @pytest.mark.asyncio
    async def test_not_available(self):
        proc = make_process(returncode=1)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            assert await ArpScanInvoker().is_available() is False
