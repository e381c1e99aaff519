"""Tests for DiskIoCollector."""

from __future__ import annotations

from scripted_port import ScriptedPort

from src.collectors.disk_io import DiskIoCollector
from src.sampling.port import (
    DISK_QUEUE_LENGTH,
    DISK_SEC_PER_READ,
    DISK_SEC_PER_WRITE,
    PHYSICAL_DISK,
)
from src.sampling.rate import RateSampler


def _disk(name: str, read_secs: float, write_secs: float, queue: float) -> dict:
    return {
        (DISK_SEC_PER_READ, name): [0.0, read_secs],
        (DISK_SEC_PER_WRITE, name): [0.0, write_secs],
        (DISK_QUEUE_LENGTH, name): queue,
    }


def _collector(port: ScriptedPort) -> DiskIoCollector:
    return DiskIoCollector(RateSampler(port, warmup_delay_ms=0))


class TestDiskIoCollector:
    async def test_slow_and_queued_disk_alerts(self) -> None:
        port = ScriptedPort(
            cpu_count=4,
            instances={PHYSICAL_DISK: ["0 C:", "_Total"]},
            counters=_disk("0 C:", 0.030, 0.001, 9.0),
        )
        metrics = await _collector(port).collect()

        assert len(metrics.disks) == 1
        disk = metrics.disks[0]
        assert disk.disk_name == "0 C:"
        assert disk.avg_disk_sec_read_ms == 30.0
        assert disk.avg_disk_sec_write_ms == 1.0
        assert disk.avg_disk_queue_length == 9.0
        assert disk.alert_triggered is True
        assert metrics.alert_triggered is True
        assert "0 C:" in (metrics.alert_message or "")

    async def test_write_latency_alone_counts(self) -> None:
        port = ScriptedPort(
            cpu_count=2,
            instances={PHYSICAL_DISK: ["1 D:"]},
            counters=_disk("1 D:", 0.0, 0.026, 4.5),
        )
        metrics = await _collector(port).collect()
        assert metrics.disks[0].alert_triggered is True

    async def test_queue_at_threshold_does_not_alert(self) -> None:
        port = ScriptedPort(
            cpu_count=4,
            instances={PHYSICAL_DISK: ["0 C:"]},
            counters=_disk("0 C:", 0.050, 0.050, 8.0),
        )
        metrics = await _collector(port).collect()
        assert metrics.alert_triggered is False

    async def test_total_instance_excluded_case_insensitively(self) -> None:
        port = ScriptedPort(instances={PHYSICAL_DISK: ["_TOTAL", "_total", "0 C:"]})
        metrics = await _collector(port).collect()
        assert [d.disk_name for d in metrics.disks] == ["0 C:"]

    async def test_unreadable_counters_degrade_to_zero(self) -> None:
        port = ScriptedPort(instances={PHYSICAL_DISK: ["0 C:"]})
        metrics = await _collector(port).collect()

        disk = metrics.disks[0]
        assert disk.avg_disk_sec_read_ms == 0.0
        assert disk.avg_disk_queue_length == 0.0
        assert metrics.error_message is None
