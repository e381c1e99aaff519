"""Two-read rate sampling for counters that need a warm-up read."""

from __future__ import annotations

import asyncio

import structlog

from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import CounterId, SamplerPort

logger = structlog.stdlib.get_logger()

DEFAULT_WARMUP_DELAY_MS = 100


class RateSampler:
    """Reads a rate counter twice and returns the second value.

    The first read only primes the counter; the delay between reads is an
    ``asyncio.sleep`` so concurrently running collectors keep going.
    A failed read yields 0.0.
    """

    def __init__(
        self,
        port: SamplerPort,
        warmup_delay_ms: int = DEFAULT_WARMUP_DELAY_MS,
    ) -> None:
        self._port = port
        self._warmup_delay_ms = warmup_delay_ms

    @property
    def port(self) -> SamplerPort:
        return self._port

    @property
    def warmup_delay_ms(self) -> int:
        return self._warmup_delay_ms

    async def sample(
        self,
        counter: CounterId,
        instance: str | None = None,
        warmup_delay_ms: int | None = None,
    ) -> float:
        """Discard one read, wait, and return the next read."""
        delay_ms = self._warmup_delay_ms if warmup_delay_ms is None else warmup_delay_ms
        try:
            await self._port.read_instant(counter, instance)
            await asyncio.sleep(delay_ms / 1000.0)
            return await self._port.read_instant(counter, instance)
        except SampleUnavailable as exc:
            logger.warning(
                "rate_sample_unavailable",
                category=counter.category,
                counter=counter.name,
                instance=instance,
                error=str(exc),
            )
            return 0.0

    async def sample_many(
        self,
        counters: list[tuple[CounterId, str | None]],
    ) -> list[float]:
        """Sample several counters concurrently so they share one warm-up delay."""
        return list(
            await asyncio.gather(*(self.sample(c, inst) for c, inst in counters))
        )
