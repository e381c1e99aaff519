"""Tests for RateSampler and read_or_default."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import (
    NET_BYTES_TOTAL_PER_SEC,
    PAGES_PER_SEC,
    PROCESSOR_TIME,
    SamplerPort,
    read_or_default,
)
from src.sampling.rate import DEFAULT_WARMUP_DELAY_MS, RateSampler


def _port(side_effect) -> MagicMock:
    port = MagicMock(spec=SamplerPort)
    port.read_instant = AsyncMock(side_effect=side_effect)
    return port


# ── sample ──────────────────────────────────────────────────────


class TestSample:
    async def test_first_read_discarded(self) -> None:
        port = _port([0.0, 5.0, 9.0, 14.0])
        sampler = RateSampler(port, warmup_delay_ms=0)

        assert await sampler.sample(PROCESSOR_TIME, "_Total") == 5.0
        assert await sampler.sample(PROCESSOR_TIME, "_Total") == 14.0
        assert port.read_instant.await_count == 4
        port.read_instant.assert_awaited_with(PROCESSOR_TIME, "_Total")

    async def test_unavailable_read_yields_zero(self) -> None:
        sampler = RateSampler(_port(SampleUnavailable("no such counter")), warmup_delay_ms=0)
        assert await sampler.sample(PAGES_PER_SEC) == 0.0

    async def test_failure_on_second_read_yields_zero(self) -> None:
        sampler = RateSampler(_port([1.0, SampleUnavailable("gone")]), warmup_delay_ms=0)
        assert await sampler.sample(PAGES_PER_SEC) == 0.0

    async def test_unexpected_errors_propagate(self) -> None:
        sampler = RateSampler(_port(RuntimeError("bug")), warmup_delay_ms=0)
        with pytest.raises(RuntimeError):
            await sampler.sample(PAGES_PER_SEC)

    async def test_warmup_delay_between_reads(self) -> None:
        sampler = RateSampler(_port([0.0, 1.0]), warmup_delay_ms=250)
        with patch("src.sampling.rate.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await sampler.sample(PAGES_PER_SEC)
        sleep.assert_awaited_once_with(0.25)

    async def test_per_call_delay_override(self) -> None:
        sampler = RateSampler(_port([0.0, 1.0]))
        assert sampler.warmup_delay_ms == DEFAULT_WARMUP_DELAY_MS
        with patch("src.sampling.rate.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await sampler.sample(PAGES_PER_SEC, warmup_delay_ms=0)
        sleep.assert_awaited_once_with(0.0)


# ── sample_many ─────────────────────────────────────────────────


class TestSampleMany:
    async def test_results_in_request_order(self) -> None:
        values = {"eth0": [0.0, 100.0], "eth1": [0.0, 200.0]}

        async def read(counter, instance=None):
            return values[instance].pop(0)

        port = MagicMock(spec=SamplerPort)
        port.read_instant = read
        sampler = RateSampler(port, warmup_delay_ms=0)

        result = await sampler.sample_many([
            (NET_BYTES_TOTAL_PER_SEC, "eth1"),
            (NET_BYTES_TOTAL_PER_SEC, "eth0"),
        ])
        assert result == [200.0, 100.0]

    async def test_single_failure_does_not_sink_others(self) -> None:
        async def read(counter, instance=None):
            if instance == "bad":
                raise SampleUnavailable("bad interface")
            return 7.0

        port = MagicMock(spec=SamplerPort)
        port.read_instant = read
        sampler = RateSampler(port, warmup_delay_ms=0)

        result = await sampler.sample_many([
            (NET_BYTES_TOTAL_PER_SEC, "bad"),
            (NET_BYTES_TOTAL_PER_SEC, "good"),
        ])
        assert result == [0.0, 7.0]


# ── read_or_default ─────────────────────────────────────────────


class TestReadOrDefault:
    async def test_passes_value_through(self) -> None:
        assert await read_or_default(AsyncMock(return_value=3)(), 0, reading="x") == 3

    async def test_substitutes_default(self) -> None:
        read = AsyncMock(side_effect=SampleUnavailable("down"))()
        assert await read_or_default(read, [], reading="drives") == []

    async def test_other_errors_propagate(self) -> None:
        read = AsyncMock(side_effect=ValueError("bad"))()
        with pytest.raises(ValueError):
            await read_or_default(read, 0, reading="x")
