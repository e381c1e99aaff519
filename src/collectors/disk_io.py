"""Disk I/O bottleneck collector — per physical disk latency and queue depth."""

from __future__ import annotations

from src.collectors.base import BaseCollector
from src.collectors.thresholds import DISK_QUEUE_LENGTH_MULTIPLIER, DISK_SEC_THRESHOLD_MS
from src.core.types import DiskIoInfo, DiskIoMetrics, MetricDomain
from src.sampling.port import (
    DISK_QUEUE_LENGTH,
    DISK_SEC_PER_READ,
    DISK_SEC_PER_WRITE,
    PHYSICAL_DISK,
    TOTAL_INSTANCE,
    read_or_default,
)


class DiskIoCollector(BaseCollector[DiskIoMetrics]):
    """Alerts per disk when (read OR write latency > 25 ms) AND queue > 2 × cores."""

    domain = MetricDomain.DISK_IO
    snapshot_type = DiskIoMetrics
    label = "disk I/O"

    async def _disk(self, name: str, queue_threshold: float) -> DiskIoInfo:
        read_secs, write_secs = await self._sampler.sample_many([
            (DISK_SEC_PER_READ, name),
            (DISK_SEC_PER_WRITE, name),
        ])
        read_ms = round(read_secs * 1000, 2)
        write_ms = round(write_secs * 1000, 2)
        queue = round(await self._read(DISK_QUEUE_LENGTH, name), 2)
        return DiskIoInfo(
            disk_name=name,
            avg_disk_sec_read_ms=read_ms,
            avg_disk_sec_write_ms=write_ms,
            avg_disk_queue_length=queue,
            alert_triggered=(
                (read_ms > DISK_SEC_THRESHOLD_MS or write_ms > DISK_SEC_THRESHOLD_MS)
                and queue > queue_threshold
            ),
        )

    async def _collect(self) -> DiskIoMetrics:
        queue_threshold = DISK_QUEUE_LENGTH_MULTIPLIER * max(self.port.cpu_count, 1)
        names = await read_or_default(
            self.port.list_instances(PHYSICAL_DISK), [], reading=PHYSICAL_DISK
        )

        disks = [
            await self._disk(name, queue_threshold)
            for name in names
            if name.casefold() != TOTAL_INSTANCE.casefold()
        ]

        alerted = [d.disk_name for d in disks if d.alert_triggered]
        message = None
        if alerted:
            message = (
                "Disk I/O Bottleneck Alert: High latency detected on disks: "
                f"{', '.join(alerted)}. Avg Disk sec/Read or sec/Write > "
                f"{DISK_SEC_THRESHOLD_MS} ms AND Avg Disk Queue Length > "
                f"{DISK_QUEUE_LENGTH_MULTIPLIER} × cores"
            )

        return DiskIoMetrics(
            disks=tuple(disks),
            alert_triggered=bool(alerted),
            alert_message=message,
        )
