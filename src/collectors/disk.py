"""Disk space collector — fixed, ready drives only."""

from __future__ import annotations

import structlog

from src.collectors.base import BaseCollector
from src.collectors.thresholds import FREE_SPACE_THRESHOLD_GB, FREE_SPACE_THRESHOLD_PCT
from src.core.types import DiskInfo, DiskMetrics, MetricDomain
from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import DriveStatus, read_or_default

logger = structlog.stdlib.get_logger()

_MIB = 1024.0 * 1024.0


def to_megabytes(size_bytes: int) -> float:
    return round(size_bytes / _MIB, 2)


def evaluate_drive(name: str, free_bytes: int, total_bytes: int) -> DiskInfo:
    """Build a DiskInfo and evaluate free% < 15 AND free GB < 5.

    *total_bytes* must be at least 0.01 MB once rounded.
    """
    free_mb = to_megabytes(free_bytes)
    total_mb = to_megabytes(total_bytes)
    free_pct = round(free_mb / total_mb * 100, 2)
    free_gb = free_mb / 1024.0
    return DiskInfo(
        drive_name=name,
        free_space_percentage=free_pct,
        free_megabytes=free_mb,
        total_size_megabytes=total_mb,
        alert_triggered=(
            free_pct < FREE_SPACE_THRESHOLD_PCT and free_gb < FREE_SPACE_THRESHOLD_GB
        ),
    )


class DiskCollector(BaseCollector[DiskMetrics]):
    """Alerts per drive when free space < 15% AND < 5 GB."""

    domain = MetricDomain.DISK
    snapshot_type = DiskMetrics
    label = "disk"

    async def _collect(self) -> DiskMetrics:
        drives: list[DriveStatus] = await read_or_default(
            self.port.list_drives(), [], reading="drives"
        )

        disks: list[DiskInfo] = []
        for drive in drives:
            if not (drive.fixed and drive.ready):
                continue
            try:
                usage = await self.port.read_drive_usage(drive.name)
            except SampleUnavailable as exc:
                logger.warning("drive_unreadable", drive=drive.name, error=str(exc))
                continue
            if to_megabytes(usage.total_bytes) <= 0:
                logger.warning("drive_unreadable", drive=drive.name, error="zero size")
                continue
            disks.append(evaluate_drive(drive.name, usage.free_bytes, usage.total_bytes))

        alerted = [d.drive_name for d in disks if d.alert_triggered]
        message = None
        if alerted:
            message = (
                f"Disk Space Alert: Low disk space on drives: {', '.join(alerted)}. "
                f"Free space < {FREE_SPACE_THRESHOLD_PCT}% AND < {FREE_SPACE_THRESHOLD_GB} GB"
            )

        return DiskMetrics(
            disks=tuple(disks),
            alert_triggered=bool(alerted),
            alert_message=message,
        )
