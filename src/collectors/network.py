"""Network issues collector — packet error ratio per interface."""

from __future__ import annotations

from src.collectors.base import BaseCollector
from src.collectors.thresholds import NETWORK_ERROR_THRESHOLD_PCT
from src.core.types import MetricDomain, NetworkInterfaceInfo, NetworkMetrics
from src.sampling.port import (
    NET_BYTES_TOTAL_PER_SEC,
    NET_OUTBOUND_ERRORS,
    NET_PACKETS_RECEIVED_PER_SEC,
    NET_PACKETS_SENT_PER_SEC,
    NET_RECEIVED_ERRORS,
    NETWORK_INTERFACE,
    read_or_default,
)


def evaluate_interface(
    name: str,
    bytes_per_sec: float,
    outbound_errors: float,
    received_errors: float,
    packets_sent: float,
    packets_received: float,
) -> NetworkInterfaceInfo:
    """Build a NetworkInterfaceInfo; the error ratio is skipped with no packets."""
    total_packets = round(packets_sent + packets_received, 2)
    error_pct: float | None = None
    triggered = False
    if total_packets > 0:
        error_pct = round((outbound_errors + received_errors) / total_packets * 100, 4)
        triggered = error_pct > NETWORK_ERROR_THRESHOLD_PCT
    return NetworkInterfaceInfo(
        interface_name=name,
        bytes_total_per_sec=round(bytes_per_sec, 2),
        packets_outbound_errors=round(outbound_errors, 2),
        packets_received_errors=round(received_errors, 2),
        total_packets=total_packets,
        error_percentage=error_pct,
        alert_triggered=triggered,
    )


class NetworkCollector(BaseCollector[NetworkMetrics]):
    """Alerts per interface when packet errors exceed 1% of total packets."""

    domain = MetricDomain.NETWORK
    snapshot_type = NetworkMetrics
    label = "network"

    async def _interface(self, name: str) -> NetworkInterfaceInfo:
        bytes_per_sec, sent, received = await self._sampler.sample_many([
            (NET_BYTES_TOTAL_PER_SEC, name),
            (NET_PACKETS_SENT_PER_SEC, name),
            (NET_PACKETS_RECEIVED_PER_SEC, name),
        ])
        outbound_errors = await self._read(NET_OUTBOUND_ERRORS, name)
        received_errors = await self._read(NET_RECEIVED_ERRORS, name)
        return evaluate_interface(
            name, bytes_per_sec, outbound_errors, received_errors, sent, received
        )

    async def _collect(self) -> NetworkMetrics:
        names = await read_or_default(
            self.port.list_instances(NETWORK_INTERFACE), [], reading=NETWORK_INTERFACE
        )
        interfaces = [await self._interface(name) for name in names]

        alerted = [i.interface_name for i in interfaces if i.alert_triggered]
        message = None
        if alerted:
            message = (
                "Network Issues Alert: High packet error rate on interfaces: "
                f"{', '.join(alerted)}. Packet errors > "
                f"{NETWORK_ERROR_THRESHOLD_PCT}% of total packets"
            )

        return NetworkMetrics(
            interfaces=tuple(interfaces),
            alert_triggered=bool(alerted),
            alert_message=message,
        )
