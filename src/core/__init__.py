"""Core module — config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import bind_agent_context, setup_logging
from src.core.types import (
    NOT_AVAILABLE,
    CachedToken,
    CpuMetrics,
    DatabaseMetrics,
    DiskIoMetrics,
    DiskMetrics,
    InstanceIdentity,
    InstanceMetadata,
    InstanceRecord,
    MemoryMetrics,
    MetricDomain,
    MetricSnapshot,
    MonitoringBatch,
    NetworkMetrics,
    ServiceMetrics,
    ServiceStatus,
    WebServerMetrics,
)

__all__ = [
    "NOT_AVAILABLE",
    "CachedToken",
    "CpuMetrics",
    "DatabaseMetrics",
    "DiskIoMetrics",
    "DiskMetrics",
    "InstanceIdentity",
    "InstanceMetadata",
    "InstanceRecord",
    "MemoryMetrics",
    "MetricDomain",
    "MetricSnapshot",
    "MonitoringBatch",
    "NetworkMetrics",
    "ServiceMetrics",
    "ServiceStatus",
    "Settings",
    "WebServerMetrics",
    "get_settings",
    "load_settings",
    "reset_settings",
    "bind_agent_context",
    "setup_logging",
]
