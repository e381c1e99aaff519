"""Abstract base collector — the contract every metric domain obeys."""

from __future__ import annotations

import abc
from typing import ClassVar, Generic, TypeVar

import structlog

from src.core.types import MetricDomain, MetricSnapshot
from src.sampling.port import CounterId, SamplerPort, read_or_default
from src.sampling.rate import RateSampler

logger = structlog.stdlib.get_logger()

S = TypeVar("S", bound=MetricSnapshot)


class BaseCollector(abc.ABC, Generic[S]):
    """Collects one metric domain into an immutable snapshot.

    Subclasses implement ``_collect()``. Sampler failures inside it are
    degraded to defaults by the subclass; anything that escapes is caught
    by ``collect()`` and reported as the snapshot's ``error_message``, so
    ``collect()`` itself never raises.
    """

    domain: ClassVar[MetricDomain]
    snapshot_type: ClassVar[type[MetricSnapshot]]
    label: ClassVar[str]

    def __init__(self, sampler: RateSampler) -> None:
        self._sampler = sampler

    @property
    def port(self) -> SamplerPort:
        return self._sampler.port

    async def collect(self) -> S:
        """Run one collection cycle."""
        try:
            snapshot = await self._collect()
        except Exception as exc:
            logger.exception("collector_failed", domain=self.domain)
            return self.failed(exc)
        if snapshot.alert_triggered:
            logger.info(
                "alert_triggered",
                domain=self.domain,
                message=snapshot.alert_message,
            )
        return snapshot

    def failed(self, exc: BaseException) -> S:
        """Default-valued snapshot carrying the failure as its error message."""
        return self.snapshot_type(  # type: ignore[return-value]
            error_message=f"Error collecting {self.label} metrics: {exc}",
        )

    @abc.abstractmethod
    async def _collect(self) -> S:
        """Gather readings, evaluate predicates and build the snapshot."""

    async def _read(
        self,
        counter: CounterId,
        instance: str | None = None,
        default: float = 0.0,
    ) -> float:
        """Read an instantaneous counter, defaulting on failure."""
        return await read_or_default(
            self.port.read_instant(counter, instance),
            default,
            reading=f"{counter.category}\\{counter.name}",
        )
