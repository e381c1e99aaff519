"""Tests for HostSampler — rate differencing, probes, drives, database."""

from __future__ import annotations

import asyncio
import socket
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.core.config import DatabaseConfig
from src.core.types import ServiceStatus
from src.sampling.exceptions import SampleUnavailable
from src.sampling.host import HostSampler
from src.sampling.port import (
    AVAILABLE_MBYTES,
    NETWORK_INTERFACE,
    PHYSICAL_DISK,
    PROCESSOR_QUEUE_LENGTH,
    WEB_REQUESTS_PER_SEC,
)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


# ── Rate helpers ────────────────────────────────────────────────


class TestRate:
    def test_first_read_is_zero(self) -> None:
        sampler = HostSampler()
        with patch("src.sampling.host.time.monotonic", return_value=100.0):
            assert sampler._rate(("bytes", "eth0"), 5000.0) == 0.0

    def test_rate_per_second(self) -> None:
        sampler = HostSampler()
        with patch("src.sampling.host.time.monotonic", side_effect=[100.0, 102.0]):
            sampler._rate(("bytes", "eth0"), 5000.0)
            assert sampler._rate(("bytes", "eth0"), 9000.0) == 2000.0

    def test_counter_reset_is_zero(self) -> None:
        sampler = HostSampler()
        with patch("src.sampling.host.time.monotonic", side_effect=[100.0, 101.0]):
            sampler._rate(("sent", "eth0"), 9000.0)
            assert sampler._rate(("sent", "eth0"), 10.0) == 0.0

    def test_ratio_of_deltas(self) -> None:
        sampler = HostSampler()
        assert sampler._ratio(("read", "sda"), 1000.0, 100.0) == 0.0
        assert sampler._ratio(("read", "sda"), 1600.0, 120.0) == 30.0

    def test_ratio_without_new_operations_is_zero(self) -> None:
        sampler = HostSampler()
        sampler._ratio(("write", "sda"), 1000.0, 100.0)
        assert sampler._ratio(("write", "sda"), 1000.0, 100.0) == 0.0


# ── Counters ────────────────────────────────────────────────────


class TestCounters:
    async def test_available_memory_in_mbytes(self) -> None:
        sampler = HostSampler()
        memory = SimpleNamespace(available=512 * 1024 * 1024, total=2048 * 1024 * 1024)
        with patch("src.sampling.host.psutil.virtual_memory", return_value=memory):
            assert await sampler.read_instant(AVAILABLE_MBYTES) == 512.0

    async def test_unsupported_counter(self) -> None:
        with pytest.raises(SampleUnavailable, match="not supported"):
            await HostSampler().read_instant(WEB_REQUESTS_PER_SEC, "_Total")

    async def test_os_error_becomes_unavailable(self) -> None:
        sampler = HostSampler()
        with patch("src.sampling.host.psutil.getloadavg", side_effect=OSError("no loadavg")):
            with pytest.raises(SampleUnavailable, match="Processor Queue Length"):
                await sampler.read_instant(PROCESSOR_QUEUE_LENGTH)

    async def test_disk_instances_include_total(self) -> None:
        disks = {"sdb": object(), "sda": object()}
        with patch("src.sampling.host.psutil.disk_io_counters", return_value=disks):
            names = await HostSampler().list_instances(PHYSICAL_DISK)
        assert names == ["sda", "sdb", "_Total"]

    async def test_interface_instances(self) -> None:
        nics = {"lo": object(), "eth0": object()}
        with patch("src.sampling.host.psutil.net_io_counters", return_value=nics):
            names = await HostSampler().list_instances(NETWORK_INTERFACE)
        assert names == ["eth0", "lo"]

    async def test_unknown_category(self) -> None:
        with pytest.raises(SampleUnavailable):
            await HostSampler().list_instances("Web Service")


# ── Drives ──────────────────────────────────────────────────────


class TestDrives:
    async def test_partitions_classified(self) -> None:
        partitions = [
            SimpleNamespace(mountpoint="/", opts="rw,relatime", fstype="ext4"),
            SimpleNamespace(mountpoint="/mnt/share", opts="rw", fstype="nfs4"),
            SimpleNamespace(mountpoint="/media/cd", opts="ro,cdrom", fstype="iso9660"),
            SimpleNamespace(mountpoint="E:\\", opts="cdrom", fstype=""),
        ]
        with patch("src.sampling.host.psutil.disk_partitions", return_value=partitions):
            drives = await HostSampler().list_drives()

        assert [(d.name, d.fixed, d.ready) for d in drives] == [
            ("/", True, True),
            ("/mnt/share", False, True),
            ("/media/cd", False, True),
            ("E:\\", False, False),
        ]

    async def test_usage(self) -> None:
        usage = SimpleNamespace(free=10, total=100)
        with patch("src.sampling.host.psutil.disk_usage", return_value=usage):
            result = await HostSampler().read_drive_usage("/")
        assert (result.free_bytes, result.total_bytes) == (10, 100)

    async def test_usage_error(self) -> None:
        with patch("src.sampling.host.psutil.disk_usage", side_effect=PermissionError("denied")):
            with pytest.raises(SampleUnavailable):
                await HostSampler().read_drive_usage("/root")


# ── Services ────────────────────────────────────────────────────


class TestSystemdStatus:
    async def _status(self, stdout: bytes) -> ServiceStatus:
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(stdout, None))
        with patch(
            "src.sampling.host.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            return_value=proc,
        ):
            return await HostSampler._systemd_service_status("nginx")

    async def test_active(self) -> None:
        assert await self._status(b"LoadState=loaded\nActiveState=active\n") == ServiceStatus.RUNNING

    async def test_failed(self) -> None:
        assert await self._status(b"LoadState=loaded\nActiveState=failed\n") == ServiceStatus.STOPPED

    async def test_not_found(self) -> None:
        status = await self._status(b"LoadState=not-found\nActiveState=inactive\n")
        assert status == ServiceStatus.NOT_INSTALLED

    async def test_missing_systemctl(self) -> None:
        with patch(
            "src.sampling.host.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            side_effect=FileNotFoundError("systemctl"),
        ):
            with pytest.raises(SampleUnavailable):
                await HostSampler._systemd_service_status("nginx")


# ── Probes ──────────────────────────────────────────────────────


class TestProbes:
    async def test_tcp_listening(self) -> None:
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            assert await HostSampler().probe_tcp("127.0.0.1", port, 1000) is True
        finally:
            server.close()
            await server.wait_closed()

    async def test_tcp_closed(self) -> None:
        assert await HostSampler().probe_tcp("127.0.0.1", _free_port(), 1000) is False

    async def test_http_status_reported(self) -> None:
        sampler = HostSampler()
        sampler._http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )
        result = await sampler.probe_http("http://localhost/health", 5000)
        await sampler.close()

        assert result.status_code == 503
        assert result.elapsed_ms >= 0.0

    async def test_http_transport_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sampler = HostSampler()
        sampler._http = httpx.AsyncClient(transport=httpx.MockTransport(refuse))
        with pytest.raises(SampleUnavailable, match="probe"):
            await sampler.probe_http("http://localhost/health", 5000)
        await sampler.close()


# ── Database ────────────────────────────────────────────────────


class TestDatabase:
    async def test_query_rows_as_dicts(self) -> None:
        sampler = HostSampler(DatabaseConfig(url="sqlite://"))
        rows = await sampler.query_database("SELECT 1 AS ok")
        await sampler.close()
        assert rows == [{"ok": 1}]

    async def test_bad_query_unavailable(self) -> None:
        sampler = HostSampler(DatabaseConfig(url="sqlite://"))
        with pytest.raises(SampleUnavailable):
            await sampler.query_database("SELECT * FROM no_such_table")
        await sampler.close()

    async def test_close_releases_engine(self) -> None:
        sampler = HostSampler(DatabaseConfig(url="sqlite://"))
        await sampler.query_database("SELECT 1 AS ok")
        await sampler.close()
        assert sampler._engine is None
