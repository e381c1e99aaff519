"""Web server collector — availability of the service, its ports and health endpoint.

The health endpoint is probed once per cycle. The collector keeps the
last ``probe_window`` probe outcomes so the 5xx share and 95th
percentile response time are measured rather than assumed, and counts
consecutive failed probes across cycles.
"""

from __future__ import annotations

import asyncio
from collections import deque

import structlog

from src.collectors.base import BaseCollector
from src.collectors.thresholds import (
    ERROR_5XX_THRESHOLD_PCT,
    HEALTH_PROBE_FAILURE_THRESHOLD,
    RESPONSE_TIME_THRESHOLD_MS,
)
from src.core.config import SamplingConfig, WebServerConfig
from src.core.types import MetricDomain, ServiceStatus, WebServerMetrics
from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import (
    TOTAL_INSTANCE,
    WEB_CONNECTION_ATTEMPTS_PER_SEC,
    WEB_CURRENT_CONNECTIONS,
    WEB_REQUESTS_PER_SEC,
    HttpProbeResult,
    read_or_default,
)
from src.sampling.rate import RateSampler

logger = structlog.stdlib.get_logger()

_FAILED_PROBE = HttpProbeResult(status_code=0, elapsed_ms=0.0)


def percentile(values: list[float], fraction: float) -> float:
    """Nearest-rank percentile of *values*; 0.0 when empty."""
    if not values:
        return 0.0
    ordered = sorted(values)
    n = len(ordered)
    return ordered[min(int(n * fraction), n - 1)]


class WebServerCollector(BaseCollector[WebServerMetrics]):
    """Availability: service down AND both ports closed, OR >= 3 consecutive
    failed health probes. Performance: 5xx > 2% AND p95 > 2000 ms.
    """

    domain = MetricDomain.WEB_SERVER
    snapshot_type = WebServerMetrics
    label = "web server"

    def __init__(
        self,
        sampler: RateSampler,
        config: WebServerConfig | None = None,
        sampling: SamplingConfig | None = None,
    ) -> None:
        super().__init__(sampler)
        self._config = config or WebServerConfig()
        self._sampling = sampling or SamplingConfig()
        self._probes: deque[HttpProbeResult] = deque(maxlen=max(self._config.probe_window, 1))
        self._consecutive_failures = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def _service_running(self) -> bool:
        status = await read_or_default(
            self.port.read_status(self._config.service_name),
            ServiceStatus.UNKNOWN,
            reading=f"service:{self._config.service_name}",
        )
        return status == ServiceStatus.RUNNING

    async def _port_listening(self, port: int) -> bool:
        return await read_or_default(
            self.port.probe_tcp(self._sampling.probe_host, port, self._sampling.tcp_timeout_ms),
            False,
            reading=f"tcp:{port}",
        )

    async def _probe_health(self) -> HttpProbeResult:
        try:
            return await self.port.probe_http(
                self._config.health_url, self._sampling.http_timeout_ms
            )
        except SampleUnavailable as exc:
            logger.warning(
                "health_probe_failed", url=self._config.health_url, error=str(exc)
            )
            return _FAILED_PROBE

    def _record_probe(self, result: HttpProbeResult) -> bool:
        """Store the probe outcome and update the consecutive failure count."""
        self._probes.append(result)
        ok = result.status_code == 200
        self._consecutive_failures = 0 if ok else self._consecutive_failures + 1
        return ok

    async def _collect(self) -> WebServerMetrics:
        running, port_80, port_443, probe = await asyncio.gather(
            self._service_running(),
            self._port_listening(self._config.http_port),
            self._port_listening(self._config.https_port),
            self._probe_health(),
        )
        probe_ok = self._record_probe(probe)
        failures = self._consecutive_failures

        requests_per_sec = current_connections = attempts_per_sec = 0.0
        if running:
            requests_per_sec, attempts_per_sec = await self._sampler.sample_many([
                (WEB_REQUESTS_PER_SEC, TOTAL_INSTANCE),
                (WEB_CONNECTION_ATTEMPTS_PER_SEC, TOTAL_INSTANCE),
            ])
            current_connections = await self._read(WEB_CURRENT_CONNECTIONS, TOTAL_INSTANCE)

        answered = [p for p in self._probes if p.status_code > 0]
        total_requests = len(answered)
        error_5xx = sum(1 for p in answered if p.status_code >= 500)
        error_pct = round(error_5xx / total_requests * 100, 2) if total_requests else 0.0
        p95 = round(percentile([p.elapsed_ms for p in answered], 0.95), 2)

        messages: list[str] = []
        availability = False
        if not running and not port_80 and not port_443:
            availability = True
            messages.append(
                f"Web Server Availability Alert: {self._config.service_name} service not "
                f"running and ports {self._config.http_port}/{self._config.https_port} "
                "not listening."
            )
        elif not probe_ok and failures >= HEALTH_PROBE_FAILURE_THRESHOLD:
            availability = True
            messages.append(
                f"Web Server Availability Alert: Health probe failed {failures} "
                "consecutive times."
            )

        performance = error_pct > ERROR_5XX_THRESHOLD_PCT and p95 > RESPONSE_TIME_THRESHOLD_MS
        if performance:
            messages.append(
                f"Web Server Performance Alert: 5xx errors at {error_pct}% "
                f"(threshold: {ERROR_5XX_THRESHOLD_PCT}%) and response time at {p95}ms "
                f"(threshold: {RESPONSE_TIME_THRESHOLD_MS}ms)"
            )

        return WebServerMetrics(
            service_running=running,
            port_80_listening=port_80,
            port_443_listening=port_443,
            health_probe_successful=probe_ok,
            health_probe_failure_count=failures,
            health_probe_response_time_ms=round(probe.elapsed_ms, 2),
            total_method_requests_per_sec=round(requests_per_sec, 2),
            current_connections=round(current_connections, 2),
            connection_attempts_per_sec=round(attempts_per_sec, 2),
            error_5xx_count=error_5xx,
            total_requests=total_requests,
            error_5xx_percentage=error_pct,
            response_time_95th_percentile_ms=p95,
            availability_alert_triggered=availability,
            performance_alert_triggered=performance,
            alert_triggered=availability or performance,
            alert_message=" ".join(messages) or None,
        )
