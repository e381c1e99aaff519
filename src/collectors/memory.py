"""Memory pressure collector."""

from __future__ import annotations

from src.collectors.base import BaseCollector
from src.collectors.thresholds import AVAILABLE_MEMORY_THRESHOLD_PCT, PAGES_PER_SEC_THRESHOLD
from src.core.types import MemoryMetrics, MetricDomain
from src.sampling.port import AVAILABLE_MBYTES, PAGES_PER_SEC, TOTAL_MBYTES


class MemoryCollector(BaseCollector[MemoryMetrics]):
    """Alerts when available memory < 10% of total AND pages/sec > 2000."""

    domain = MetricDomain.MEMORY
    snapshot_type = MemoryMetrics
    label = "memory"

    async def _collect(self) -> MemoryMetrics:
        available = round(await self._read(AVAILABLE_MBYTES), 2)
        pages_per_sec = round(await self._sampler.sample(PAGES_PER_SEC), 2)
        total = round(await self._read(TOTAL_MBYTES), 2)

        # Unknown total → percentage undefined, predicate cannot hold.
        available_pct = round(available / total * 100, 2) if total > 0 else None

        triggered = (
            available_pct is not None
            and available_pct < AVAILABLE_MEMORY_THRESHOLD_PCT
            and pages_per_sec > PAGES_PER_SEC_THRESHOLD
        )
        message = None
        if triggered:
            message = (
                f"Memory Pressure Alert: Available memory is {available_pct}% "
                f"(threshold: {AVAILABLE_MEMORY_THRESHOLD_PCT}%) and Pages/sec is "
                f"{pages_per_sec} (threshold: {PAGES_PER_SEC_THRESHOLD})"
            )

        return MemoryMetrics(
            available_mbytes=available,
            total_memory_mbytes=total,
            available_memory_percentage=available_pct,
            pages_per_sec=pages_per_sec,
            alert_triggered=triggered,
            alert_message=message,
        )
