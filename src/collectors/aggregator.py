"""Concurrent fan-out of every collector into one MonitoringBatch."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from src.collectors.base import BaseCollector
from src.collectors.cpu import CpuCollector
from src.collectors.database import DatabaseCollector
from src.collectors.disk import DiskCollector
from src.collectors.disk_io import DiskIoCollector
from src.collectors.memory import MemoryCollector
from src.collectors.network import NetworkCollector
from src.collectors.services import ServiceCollector
from src.collectors.web_server import WebServerCollector
from src.core.config import Settings
from src.core.types import MetricDomain, MonitoringBatch
from src.sampling.port import SamplerPort
from src.sampling.rate import RateSampler

logger = structlog.stdlib.get_logger()

BATCH_FIELDS: dict[MetricDomain, str] = {
    MetricDomain.CPU: "cpu_metrics",
    MetricDomain.MEMORY: "memory_metrics",
    MetricDomain.DISK: "disk_metrics",
    MetricDomain.DISK_IO: "disk_io_metrics",
    MetricDomain.NETWORK: "network_metrics",
    MetricDomain.WEB_SERVER: "web_server_metrics",
    MetricDomain.DATABASE: "database_metrics",
    MetricDomain.SERVICES: "service_metrics",
}


class CollectionAggregator:
    """Runs all collectors concurrently and merges their snapshots.

    ``collect_all()`` never raises. A collector that fails contributes a
    default snapshot carrying its error; the batch-level error is only set
    when the fan-out itself cannot be started.
    """

    def __init__(self, collectors: Sequence[BaseCollector[Any]]) -> None:
        self._collectors = list(collectors)

    @classmethod
    def from_settings(cls, port: SamplerPort, settings: Settings) -> CollectionAggregator:
        """Wire the eight standard collectors onto one sampler port."""
        sampler = RateSampler(port, settings.sampling.warmup_delay_ms)
        return cls([
            CpuCollector(sampler, settings.cpu),
            MemoryCollector(sampler),
            DiskCollector(sampler),
            DiskIoCollector(sampler),
            NetworkCollector(sampler),
            WebServerCollector(sampler, settings.web_server, settings.sampling),
            DatabaseCollector(sampler),
            ServiceCollector(sampler, settings.services, settings.sampling),
        ])

    @property
    def collectors(self) -> list[BaseCollector[Any]]:
        return list(self._collectors)

    async def collect_all(self) -> MonitoringBatch:
        started = datetime.now(UTC)
        tasks: list[asyncio.Task[Any]] = []
        try:
            for collector in self._collectors:
                tasks.append(
                    asyncio.create_task(collector.collect(), name=f"collect-{collector.domain}")
                )
        except Exception as exc:
            logger.exception("collection_launch_failed", launched=len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            return MonitoringBatch(
                collection_timestamp=started,
                error_message=f"Error collecting data: {exc}",
            )

        results = await asyncio.gather(*tasks, return_exceptions=True)

        fields: dict[str, Any] = {}
        for collector, result in zip(self._collectors, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "collector_crashed",
                    domain=collector.domain,
                    error=str(result),
                )
                result = collector.failed(result)
            fields[BATCH_FIELDS[collector.domain]] = result

        batch = MonitoringBatch(collection_timestamp=started, **fields)
        logger.info(
            "collection_complete",
            collectors=len(self._collectors),
            alerts=batch.alert_count,
            elapsed_secs=round((datetime.now(UTC) - started).total_seconds(), 3),
        )
        return batch
