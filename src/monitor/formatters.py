"""Pure functions that turn metric snapshots into AlertMessage objects."""

from __future__ import annotations

from src.core.types import (
    DatabaseMetrics,
    MetricDomain,
    MetricSnapshot,
    MonitoringBatch,
    WebServerMetrics,
)
from src.monitor.types import AlertMessage, Severity

# ── Severity mappings ───────────────────────────────────────────

_ALERT_SEVERITY: dict[MetricDomain, Severity] = {
    MetricDomain.CPU: Severity.WARNING,
    MetricDomain.MEMORY: Severity.WARNING,
    MetricDomain.DISK: Severity.CRITICAL,
    MetricDomain.DISK_IO: Severity.WARNING,
    MetricDomain.NETWORK: Severity.WARNING,
    MetricDomain.WEB_SERVER: Severity.WARNING,
    MetricDomain.DATABASE: Severity.WARNING,
    MetricDomain.SERVICES: Severity.CRITICAL,
}

_TITLES: dict[MetricDomain, str] = {
    MetricDomain.CPU: "CPU pressure",
    MetricDomain.MEMORY: "Memory pressure",
    MetricDomain.DISK: "Low disk space",
    MetricDomain.DISK_IO: "Disk I/O bottleneck",
    MetricDomain.NETWORK: "Network errors",
    MetricDomain.WEB_SERVER: "Web server degraded",
    MetricDomain.DATABASE: "Database degraded",
    MetricDomain.SERVICES: "Critical service down",
}

# Sub-resource collections reported by name instead of value.
_RESOURCE_FIELDS: dict[str, tuple[str, str]] = {
    "disks": ("drive_name", "disk_name"),
    "interfaces": ("interface_name", "interface_name"),
    "services": ("display_name", "service_name"),
}

_SKIP_FIELDS = {"alert_triggered", "alert_message", "error_message"}


def _scalar_fields(snapshot: MetricSnapshot) -> dict[str, str]:
    fields: dict[str, str] = {}
    for key, value in snapshot.model_dump(mode="json").items():
        if key in _SKIP_FIELDS or value is None:
            continue
        if key in _RESOURCE_FIELDS:
            names = [
                str(item.get(_RESOURCE_FIELDS[key][0]) or item.get(_RESOURCE_FIELDS[key][1]))
                for item in value
                if item.get("alert_triggered")
            ]
            if names:
                fields[f"alerted_{key}"] = ", ".join(names)
            continue
        if isinstance(value, (dict, list)):
            continue
        fields[key] = str(value)
    return fields


def _severity(domain: MetricDomain, snapshot: MetricSnapshot) -> Severity:
    if isinstance(snapshot, WebServerMetrics) and snapshot.availability_alert_triggered:
        return Severity.CRITICAL
    return _ALERT_SEVERITY.get(domain, Severity.WARNING)


# ── Formatters ──────────────────────────────────────────────────


def format_snapshot_alert(
    domain: MetricDomain,
    snapshot: MetricSnapshot,
    host: str = "",
) -> AlertMessage | None:
    """AlertMessage for a triggered snapshot, or None if nothing fired."""
    if not snapshot.alert_triggered:
        return None
    return AlertMessage(
        severity=_severity(domain, snapshot),
        title=_TITLES.get(domain, domain.value),
        body=snapshot.alert_message or "",
        domain=domain.value,
        host=host,
        fields=_scalar_fields(snapshot),
        raw=snapshot.model_dump(mode="json"),
    )


def format_collection_error(
    domain: MetricDomain,
    snapshot: MetricSnapshot,
    host: str = "",
) -> AlertMessage | None:
    """AlertMessage for a snapshot that could not be collected."""
    if not snapshot.error_message:
        return None
    unavailable = isinstance(snapshot, DatabaseMetrics) and not snapshot.database_available
    return AlertMessage(
        severity=Severity.WARNING if unavailable else Severity.INFO,
        title="Database unavailable" if unavailable else f"{domain.value} collection failed",
        body=snapshot.error_message,
        domain=domain.value,
        host=host,
    )


def format_batch(batch: MonitoringBatch, host: str = "") -> list[AlertMessage]:
    """All alert and error messages of one batch, in collection order."""
    messages: list[AlertMessage] = []
    if batch.error_message:
        messages.append(AlertMessage(
            severity=Severity.WARNING,
            title="Collection failed",
            body=batch.error_message,
            domain="batch",
            host=host,
        ))
    for domain, snapshot in batch.snapshots().items():
        for msg in (
            format_snapshot_alert(domain, snapshot, host),
            format_collection_error(domain, snapshot, host),
        ):
            if msg is not None:
                messages.append(msg)
    return messages
