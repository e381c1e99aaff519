"""Critical service availability collector."""

from __future__ import annotations

import asyncio

import structlog

from src.collectors.base import BaseCollector
from src.core.config import MonitoredService, SamplingConfig, default_services
from src.core.types import MetricDomain, ServiceInfo, ServiceMetrics, ServiceStatus
from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import read_or_default
from src.sampling.rate import RateSampler

logger = structlog.stdlib.get_logger()


def service_alert(is_running: bool, status: str, port: int | None, port_listening: bool | None) -> bool:
    """Down AND port closed; with no port, down unless simply not installed."""
    if is_running:
        return False
    if port is not None:
        return port_listening is False
    return status != ServiceStatus.NOT_INSTALLED


class ServiceCollector(BaseCollector[ServiceMetrics]):
    """Checks each monitored service/port pair concurrently."""

    domain = MetricDomain.SERVICES
    snapshot_type = ServiceMetrics
    label = "service"

    def __init__(
        self,
        sampler: RateSampler,
        services: list[MonitoredService] | None = None,
        sampling: SamplingConfig | None = None,
    ) -> None:
        super().__init__(sampler)
        self._services = list(services) if services is not None else default_services()
        self._sampling = sampling or SamplingConfig()

    async def _check(self, service: MonitoredService) -> ServiceInfo:
        try:
            status = str(await self.port.read_status(service.service_name))
        except SampleUnavailable as exc:
            logger.warning(
                "service_status_unavailable",
                service=service.service_name,
                error=str(exc),
            )
            status = f"Error: {exc}"
        is_running = status == ServiceStatus.RUNNING

        port_listening = None
        if service.port is not None:
            port_listening = await read_or_default(
                self.port.probe_tcp(
                    self._sampling.probe_host, service.port, self._sampling.tcp_timeout_ms
                ),
                False,
                reading=f"tcp:{service.port}",
            )

        return ServiceInfo(
            service_name=service.service_name,
            display_name=service.display_name or service.service_name,
            is_running=is_running,
            status=status,
            monitored_port=service.port,
            port_listening=port_listening,
            alert_triggered=service_alert(is_running, status, service.port, port_listening),
        )

    async def _collect(self) -> ServiceMetrics:
        services = await asyncio.gather(*(self._check(s) for s in self._services))

        alerted = [f"{s.display_name} ({s.service_name})" for s in services if s.alert_triggered]
        message = None
        if alerted:
            message = (
                "Critical Service Availability Alert: The following services are not "
                "running and their corresponding ports are not responding: "
                f"{', '.join(alerted)}"
            )

        return ServiceMetrics(
            services=tuple(services),
            alert_triggered=bool(alerted),
            alert_message=message,
        )
