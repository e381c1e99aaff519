"""Tests for CpuCollector — threshold boundary, rolling window, degraded reads."""

from __future__ import annotations

import asyncio

from scripted_port import ScriptedPort

from src.collectors.cpu import CpuCollector
from src.core.config import CpuConfig, CpuMode
from src.sampling.port import PROCESSOR_QUEUE_LENGTH, PROCESSOR_TIME, TOTAL_INSTANCE
from src.sampling.rate import RateSampler

CPU = (PROCESSOR_TIME, TOTAL_INSTANCE)
QUEUE = (PROCESSOR_QUEUE_LENGTH, None)


def _single(port: ScriptedPort) -> CpuCollector:
    return CpuCollector(
        RateSampler(port, warmup_delay_ms=0),
        CpuConfig(mode=CpuMode.SINGLE),
    )


# ── Threshold boundary ──────────────────────────────────────────


class TestThresholds:
    async def test_exact_thresholds_do_not_alert(self) -> None:
        port = ScriptedPort(cpu_count=4, counters={CPU: [0.0, 90.0], QUEUE: 8.0})
        metrics = await _single(port).collect()

        assert metrics.processor_time_percentage == 90.0
        assert metrics.queue_length_per_core == 2.0
        assert metrics.alert_triggered is False
        assert metrics.alert_message is None

    async def test_just_above_thresholds_alerts(self) -> None:
        port = ScriptedPort(cpu_count=4, counters={CPU: [0.0, 90.01], QUEUE: 8.04})
        metrics = await _single(port).collect()

        assert metrics.queue_length_per_core == 2.01
        assert metrics.alert_triggered is True
        assert metrics.alert_message == (
            "CPU Pressure Alert: CPU usage is 90.01% (threshold: 90.0%) and "
            "Queue Length per Core is 2.01 (threshold: 2.0)"
        )

    async def test_high_cpu_alone_does_not_alert(self) -> None:
        port = ScriptedPort(cpu_count=4, counters={CPU: [0.0, 99.0], QUEUE: 1.0})
        metrics = await _single(port).collect()
        assert metrics.alert_triggered is False

    async def test_deep_queue_alone_does_not_alert(self) -> None:
        port = ScriptedPort(cpu_count=2, counters={CPU: [0.0, 40.0], QUEUE: 20.0})
        metrics = await _single(port).collect()
        assert metrics.queue_length_per_core == 10.0
        assert metrics.alert_triggered is False


# ── Rate sampling ───────────────────────────────────────────────


class TestSampling:
    async def test_first_processor_read_discarded(self) -> None:
        port = ScriptedPort(counters={CPU: [100.0, 12.5], QUEUE: 0.0})
        metrics = await _single(port).collect()
        assert metrics.processor_time_percentage == 12.5
        assert port.reads.count(CPU) == 2

    async def test_number_of_cores_reported(self) -> None:
        port = ScriptedPort(cpu_count=16, counters={CPU: 1.0, QUEUE: 0.0})
        metrics = await _single(port).collect()
        assert metrics.number_of_cores == 16
        assert metrics.samples_in_window == 1


# ── Rolling window ──────────────────────────────────────────────


class TestRollingWindow:
    def _collector(self, port: ScriptedPort, size: int = 3) -> CpuCollector:
        return CpuCollector(
            RateSampler(port, warmup_delay_ms=0),
            CpuConfig(mode=CpuMode.ROLLING, window_size=size, sample_interval_secs=0),
        )

    async def test_first_cycle_fills_baseline(self) -> None:
        port = ScriptedPort(counters={CPU: [0, 10, 0, 20, 0, 30], QUEUE: 0.0})
        collector = self._collector(port)

        metrics = await collector.collect()

        assert collector.window == [10, 20, 30]
        assert metrics.samples_in_window == 3
        assert metrics.processor_time_percentage == 20.0

    async def test_later_cycle_slides_window(self) -> None:
        port = ScriptedPort(counters={CPU: [0, 10, 0, 20, 0, 30, 0, 60], QUEUE: 0.0})
        collector = self._collector(port)

        await collector.collect()
        metrics = await collector.collect()

        assert collector.window == [20, 30, 60]
        assert metrics.processor_time_percentage == round((20 + 30 + 60) / 3, 2)

    async def test_concurrent_cycles_fill_baseline_once(self) -> None:
        port = ScriptedPort(counters={CPU: 50.0, QUEUE: 0.0})
        collector = self._collector(port, size=4)

        await asyncio.gather(collector.collect(), collector.collect())

        # 4 baseline samples + 1 sliding sample, two reads each
        assert port.reads.count(CPU) == 10
        assert len(collector.window) == 4

    async def test_window_average_drives_alert(self) -> None:
        port = ScriptedPort(
            cpu_count=1,
            counters={CPU: [0, 95, 0, 95, 0, 95], QUEUE: 3.0},
        )
        metrics = await self._collector(port).collect()
        assert metrics.alert_triggered is True


# ── Degraded reads ──────────────────────────────────────────────


class TestDegradedReads:
    async def test_unavailable_counters_default_to_zero(self) -> None:
        metrics = await _single(ScriptedPort()).collect()

        assert metrics.processor_time_percentage == 0.0
        assert metrics.processor_queue_length == 0.0
        assert metrics.alert_triggered is False
        assert metrics.error_message is None
