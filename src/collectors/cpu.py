"""CPU pressure collector — rolling average of processor time plus run queue."""

from __future__ import annotations

import asyncio
from collections import deque

import structlog

from src.collectors.base import BaseCollector
from src.collectors.thresholds import CPU_THRESHOLD_PCT, QUEUE_LENGTH_PER_CORE_THRESHOLD
from src.core.config import CpuConfig, CpuMode
from src.core.types import CpuMetrics, MetricDomain
from src.sampling.port import PROCESSOR_QUEUE_LENGTH, PROCESSOR_TIME, TOTAL_INSTANCE
from src.sampling.rate import RateSampler

logger = structlog.stdlib.get_logger()


class CpuCollector(BaseCollector[CpuMetrics]):
    """Alerts when average CPU > 90% AND processor queue per core > 2.

    In rolling mode the first cycle fills a window of ``window_size``
    samples spaced ``sample_interval_secs`` apart before returning; later
    cycles add one sample and drop the oldest. Single mode takes one
    warm-up sample per cycle and keeps no state.
    """

    domain = MetricDomain.CPU
    snapshot_type = CpuMetrics
    label = "CPU"

    def __init__(self, sampler: RateSampler, config: CpuConfig | None = None) -> None:
        super().__init__(sampler)
        self._config = config or CpuConfig()
        self._window: deque[float] = deque(maxlen=max(self._config.window_size, 1))
        self._window_lock = asyncio.Lock()
        self._baseline_ready = False

    @property
    def window(self) -> list[float]:
        return list(self._window)

    async def _sample_processor_time(self) -> float:
        return await self._sampler.sample(PROCESSOR_TIME, TOTAL_INSTANCE)

    async def _fill_baseline(self) -> None:
        size = self._window.maxlen or 1
        logger.info(
            "cpu_baseline_started",
            samples=size,
            interval_secs=self._config.sample_interval_secs,
        )
        for i in range(size):
            if i > 0:
                await asyncio.sleep(self._config.sample_interval_secs)
            self._window.append(await self._sample_processor_time())
        logger.info("cpu_baseline_ready", samples=len(self._window))

    async def _processor_time(self) -> tuple[float, int]:
        """Return (processor time %, samples it was averaged over)."""
        if self._config.mode == CpuMode.SINGLE:
            return await self._sample_processor_time(), 1

        async with self._window_lock:
            if not self._baseline_ready:
                await self._fill_baseline()
                self._baseline_ready = True
            else:
                self._window.append(await self._sample_processor_time())
            samples = list(self._window)
        return sum(samples) / len(samples), len(samples)

    async def _collect(self) -> CpuMetrics:
        cores = max(self.port.cpu_count, 1)
        processor_time, samples = await self._processor_time()
        processor_time = round(processor_time, 2)
        queue_length = round(await self._read(PROCESSOR_QUEUE_LENGTH), 2)
        per_core = round(queue_length / cores, 2)

        triggered = (
            processor_time > CPU_THRESHOLD_PCT
            and per_core > QUEUE_LENGTH_PER_CORE_THRESHOLD
        )
        message = None
        if triggered:
            message = (
                f"CPU Pressure Alert: CPU usage is {processor_time}% "
                f"(threshold: {CPU_THRESHOLD_PCT}%) and Queue Length per Core is "
                f"{per_core} (threshold: {QUEUE_LENGTH_PER_CORE_THRESHOLD})"
            )

        return CpuMetrics(
            processor_time_percentage=processor_time,
            processor_queue_length=queue_length,
            number_of_cores=cores,
            queue_length_per_core=per_core,
            samples_in_window=samples,
            alert_triggered=triggered,
            alert_message=message,
        )
