"""Tests for DiskCollector — both-conditions rule, drive filtering."""

from __future__ import annotations

from scripted_port import ScriptedPort

from src.collectors.disk import DiskCollector, evaluate_drive
from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import DriveStatus, DriveUsage
from src.sampling.rate import RateSampler

GIB = 1024**3


def _usage_at_14pct(free_gb: int) -> DriveUsage:
    free = free_gb * GIB
    return DriveUsage(free_bytes=free, total_bytes=int(free * 100 / 14))


def _collector(port: ScriptedPort) -> DiskCollector:
    return DiskCollector(RateSampler(port, warmup_delay_ms=0))


class TestEvaluateDrive:
    def test_low_percentage_and_low_absolute_alerts(self) -> None:
        usage = _usage_at_14pct(4)
        info = evaluate_drive("C:\\", usage.free_bytes, usage.total_bytes)
        assert info.free_space_percentage == 14.0
        assert info.free_megabytes == 4096.0
        assert info.alert_triggered is True

    def test_low_percentage_with_enough_space_does_not_alert(self) -> None:
        usage = _usage_at_14pct(6)
        info = evaluate_drive("C:\\", usage.free_bytes, usage.total_bytes)
        assert info.free_space_percentage == 14.0
        assert info.alert_triggered is False

    def test_small_drive_with_high_percentage_does_not_alert(self) -> None:
        info = evaluate_drive("E:\\", 2 * GIB, 4 * GIB)
        assert info.free_space_percentage == 50.0
        assert info.alert_triggered is False


class TestDiskCollector:
    async def test_alerting_drive_named_in_message(self) -> None:
        port = ScriptedPort(
            drives=[DriveStatus(name="C:\\"), DriveStatus(name="D:\\")],
            usage={"C:\\": _usage_at_14pct(4), "D:\\": _usage_at_14pct(6)},
        )
        metrics = await _collector(port).collect()

        assert [d.drive_name for d in metrics.disks] == ["C:\\", "D:\\"]
        assert [d.alert_triggered for d in metrics.disks] == [True, False]
        assert metrics.alert_triggered is True
        assert metrics.alert_message == (
            "Disk Space Alert: Low disk space on drives: C:\\. "
            "Free space < 15.0% AND < 5.0 GB"
        )

    async def test_removable_and_unready_drives_skipped(self) -> None:
        port = ScriptedPort(
            drives=[
                DriveStatus(name="C:\\"),
                DriveStatus(name="D:\\", fixed=False),
                DriveStatus(name="E:\\", ready=False),
            ],
            usage={
                "C:\\": DriveUsage(free_bytes=50 * GIB, total_bytes=100 * GIB),
                "D:\\": _usage_at_14pct(1),
                "E:\\": _usage_at_14pct(1),
            },
        )
        metrics = await _collector(port).collect()

        assert [d.drive_name for d in metrics.disks] == ["C:\\"]
        assert metrics.alert_triggered is False

    async def test_unreadable_and_empty_drives_skipped(self) -> None:
        port = ScriptedPort(
            drives=[DriveStatus(name="C:\\"), DriveStatus(name="F:\\"), DriveStatus(name="G:\\")],
            usage={
                "C:\\": DriveUsage(free_bytes=50 * GIB, total_bytes=100 * GIB),
                "F:\\": SampleUnavailable("device not ready"),
                "G:\\": DriveUsage(free_bytes=0, total_bytes=0),
            },
        )
        metrics = await _collector(port).collect()

        assert [d.drive_name for d in metrics.disks] == ["C:\\"]
        assert metrics.error_message is None

    async def test_tiny_drive_skipped_without_losing_others(self) -> None:
        port = ScriptedPort(
            drives=[DriveStatus(name="C:\\"), DriveStatus(name="T:\\")],
            usage={
                "C:\\": DriveUsage(free_bytes=4 * GIB, total_bytes=100 * GIB),
                "T:\\": DriveUsage(free_bytes=0, total_bytes=4096),
            },
        )
        metrics = await _collector(port).collect()

        assert metrics.error_message is None
        assert [d.drive_name for d in metrics.disks] == ["C:\\"]
        assert metrics.disks[0].free_space_percentage == 4.0
        assert metrics.alert_triggered is True

    async def test_no_drives(self) -> None:
        metrics = await _collector(ScriptedPort()).collect()
        assert metrics.disks == ()
        assert metrics.alert_triggered is False
