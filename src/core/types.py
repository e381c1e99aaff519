"""Domain types — metric snapshots, monitoring batch, cloud instance records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class MetricDomain(StrEnum):
    """Metric domains collected each cycle."""

    CPU = "CPU"
    MEMORY = "MEMORY"
    DISK = "DISK"
    DISK_IO = "DISK_IO"
    NETWORK = "NETWORK"
    WEB_SERVER = "WEB_SERVER"
    DATABASE = "DATABASE"
    SERVICES = "SERVICES"


class ServiceStatus(StrEnum):
    """Service-control status as reported by the sampler port."""

    RUNNING = "Running"
    STOPPED = "Stopped"
    START_PENDING = "StartPending"
    STOP_PENDING = "StopPending"
    PAUSED = "Paused"
    NOT_INSTALLED = "NotInstalled"
    UNKNOWN = "Unknown"


# ── Snapshots ───────────────────────────────────────────────────


class MetricSnapshot(BaseModel):
    """Immutable result of one collection cycle for one domain.

    ``alert_message`` is set iff at least one alert condition fired.
    ``error_message`` is set only when the collector body itself failed.
    """

    model_config = ConfigDict(frozen=True)

    alert_triggered: bool = False
    alert_message: str | None = None
    error_message: str | None = None


class CpuMetrics(MetricSnapshot):
    """CPU pressure: avg CPU% > 90 AND queue length per core > 2."""

    processor_time_percentage: float = 0.0
    processor_queue_length: float = 0.0
    number_of_cores: int = 0
    queue_length_per_core: float = 0.0
    samples_in_window: int = 0


class MemoryMetrics(MetricSnapshot):
    """Memory pressure: available memory < 10% AND pages/sec > 2000."""

    available_mbytes: float = 0.0
    total_memory_mbytes: float = 0.0
    available_memory_percentage: float | None = None
    pages_per_sec: float = 0.0


class DiskInfo(BaseModel):
    """Free space on one fixed drive."""

    model_config = ConfigDict(frozen=True)

    drive_name: str
    free_space_percentage: float = 0.0
    free_megabytes: float = 0.0
    total_size_megabytes: float = 0.0
    alert_triggered: bool = False


class DiskMetrics(MetricSnapshot):
    """Disk space: per drive free space < 15% AND < 5 GB."""

    disks: tuple[DiskInfo, ...] = ()


class DiskIoInfo(BaseModel):
    """Latency and queue depth of one physical disk."""

    model_config = ConfigDict(frozen=True)

    disk_name: str
    avg_disk_sec_read_ms: float = 0.0
    avg_disk_sec_write_ms: float = 0.0
    avg_disk_queue_length: float = 0.0
    alert_triggered: bool = False


class DiskIoMetrics(MetricSnapshot):
    """Disk I/O bottleneck: read or write latency > 25 ms AND queue > 2 × cores."""

    disks: tuple[DiskIoInfo, ...] = ()


class NetworkInterfaceInfo(BaseModel):
    """Throughput and packet errors of one interface.

    ``error_percentage`` is None when no packets were observed.
    """

    model_config = ConfigDict(frozen=True)

    interface_name: str
    bytes_total_per_sec: float = 0.0
    packets_outbound_errors: float = 0.0
    packets_received_errors: float = 0.0
    total_packets: float = 0.0
    error_percentage: float | None = None
    alert_triggered: bool = False


class NetworkMetrics(MetricSnapshot):
    """Network issues: packet errors > 1% of total packets."""

    interfaces: tuple[NetworkInterfaceInfo, ...] = ()


class WebServerMetrics(MetricSnapshot):
    """Web server availability and performance.

    Availability and performance alerts fire independently;
    ``alert_triggered`` is their OR.
    """

    service_running: bool = False
    port_80_listening: bool = False
    port_443_listening: bool = False
    health_probe_successful: bool = False
    health_probe_failure_count: int = 0
    health_probe_response_time_ms: float = 0.0

    total_method_requests_per_sec: float = 0.0
    current_connections: float = 0.0
    connection_attempts_per_sec: float = 0.0
    error_5xx_count: int = 0
    total_requests: int = 0
    error_5xx_percentage: float = 0.0
    response_time_95th_percentile_ms: float = 0.0

    availability_alert_triggered: bool = False
    performance_alert_triggered: bool = False


class DatabaseMetrics(MetricSnapshot):
    """Database connection, query and transaction log health.

    An unreachable database is reported through ``database_available``
    and ``error_message``, never as an alert.
    """

    database_available: bool = False

    user_connections: int = 0
    max_connections: int = 0
    connection_usage_percentage: float = 0.0
    connection_failures_per_minute: int = 0
    logins_per_sec: float = 0.0

    batch_requests_per_sec: float = 0.0
    sql_compilations_per_sec: float = 0.0
    slow_query_count: int = 0
    avg_query_duration_ms: float = 0.0
    query_duration_95th_percentile_ms: float = 0.0

    log_file_used_size_kb: float = 0.0
    log_file_total_size_kb: float = 0.0
    log_file_usage_percentage: float = 0.0
    last_log_backup_time: datetime | None = None
    minutes_since_last_log_backup: float | None = None

    connection_alert_triggered: bool = False
    query_performance_alert_triggered: bool = False
    transaction_log_alert_triggered: bool = False


class ServiceInfo(BaseModel):
    """Status of one monitored service/port pair."""

    model_config = ConfigDict(frozen=True)

    service_name: str
    display_name: str = ""
    is_running: bool = False
    status: str = ServiceStatus.UNKNOWN.value
    monitored_port: int | None = None
    port_listening: bool | None = None
    alert_triggered: bool = False


class ServiceMetrics(MetricSnapshot):
    """Critical service availability: not running AND port not listening."""

    services: tuple[ServiceInfo, ...] = ()


class MonitoringBatch(BaseModel):
    """All domain snapshots for one collection cycle."""

    collection_timestamp: datetime
    cpu_metrics: CpuMetrics = Field(default_factory=CpuMetrics)
    memory_metrics: MemoryMetrics = Field(default_factory=MemoryMetrics)
    disk_metrics: DiskMetrics = Field(default_factory=DiskMetrics)
    disk_io_metrics: DiskIoMetrics = Field(default_factory=DiskIoMetrics)
    network_metrics: NetworkMetrics = Field(default_factory=NetworkMetrics)
    web_server_metrics: WebServerMetrics = Field(default_factory=WebServerMetrics)
    database_metrics: DatabaseMetrics = Field(default_factory=DatabaseMetrics)
    service_metrics: ServiceMetrics = Field(default_factory=ServiceMetrics)
    error_message: str | None = None

    def snapshots(self) -> dict[MetricDomain, MetricSnapshot]:
        """Return the domain → snapshot mapping in collection order."""
        return {
            MetricDomain.CPU: self.cpu_metrics,
            MetricDomain.MEMORY: self.memory_metrics,
            MetricDomain.DISK: self.disk_metrics,
            MetricDomain.DISK_IO: self.disk_io_metrics,
            MetricDomain.NETWORK: self.network_metrics,
            MetricDomain.WEB_SERVER: self.web_server_metrics,
            MetricDomain.DATABASE: self.database_metrics,
            MetricDomain.SERVICES: self.service_metrics,
        }

    @property
    def alert_count(self) -> int:
        return sum(1 for s in self.snapshots().values() if s.alert_triggered)


# ── Cloud Types ─────────────────────────────────────────────────


NOT_AVAILABLE = "N/A"


class CachedToken(BaseModel):
    """Metadata bearer token with its absolute expiry (epoch seconds)."""

    model_config = ConfigDict(frozen=True)

    value: str
    expires_at: float

    def is_usable(self, now: float, margin_secs: float) -> bool:
        """True while ``now`` is before expiry minus the safety margin."""
        return bool(self.value) and now < self.expires_at - margin_secs


class InstanceRecord(BaseModel):
    """One non-terminated cloud instance."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    private_ip: str = ""
    public_ip: str = ""
    region: str = ""


class InstanceIdentity(BaseModel):
    """Minimal identity of the instance this agent runs on."""

    instance_id: str
    region: str
    availability_zone: str
    instance_type: str = NOT_AVAILABLE


class NetworkInterfaceMetadata(BaseModel):
    """Metadata of one attached network interface, keyed by MAC."""

    mac_address: str
    device_number: str = NOT_AVAILABLE
    interface_id: str = NOT_AVAILABLE
    local_hostname: str = NOT_AVAILABLE
    local_ipv4s: str = NOT_AVAILABLE
    public_hostname: str = NOT_AVAILABLE
    public_ipv4s: str = NOT_AVAILABLE
    security_group_ids: str = NOT_AVAILABLE
    subnet_id: str = NOT_AVAILABLE
    subnet_ipv4_cidr_block: str = NOT_AVAILABLE
    vpc_id: str = NOT_AVAILABLE
    vpc_ipv4_cidr_block: str = NOT_AVAILABLE
    owner_id: str = NOT_AVAILABLE


class InstanceMetadata(BaseModel):
    """Flattened instance metadata document.

    Every absent field resolves to ``"N/A"``.
    """

    is_success: bool = False
    error_message: str | None = None
    collection_time: datetime

    instance_id: str = NOT_AVAILABLE
    instance_type: str = NOT_AVAILABLE
    availability_zone: str = NOT_AVAILABLE
    region: str = NOT_AVAILABLE
    local_ipv4: str = NOT_AVAILABLE
    public_hostname: str = NOT_AVAILABLE
    public_ipv4: str = NOT_AVAILABLE
    name: str = NOT_AVAILABLE
    ami_id: str = NOT_AVAILABLE
    security_groups: str = NOT_AVAILABLE

    network_interfaces: list[NetworkInterfaceMetadata] = Field(default_factory=list)
    identity_document: str = NOT_AVAILABLE
    user_data: str = NOT_AVAILABLE
