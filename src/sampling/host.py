"""Production sampler port backed by psutil, httpx and SQLAlchemy.

Cumulative OS counters are turned into per-second rates by differencing
against the previous read of the same counter, which gives them the
same first-read warm-up behaviour as Windows rate counters.
"""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import Callable
from typing import Any

import httpx
import psutil
import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from src.core.config import DatabaseConfig
from src.core.types import ServiceStatus
from src.sampling import port as counters
from src.sampling.exceptions import DatabaseUnavailable, SampleUnavailable
from src.sampling.port import (
    CounterId,
    DriveStatus,
    DriveUsage,
    HttpProbeResult,
    SamplerPort,
)

logger = structlog.stdlib.get_logger()

_MIB = 1024 * 1024
_PAGE_SIZE = 4096

# Filesystems that are never treated as fixed local drives.
_NON_FIXED_FSTYPES = frozenset({"nfs", "nfs4", "cifs", "smbfs", "sshfs", "iso9660", "udf"})

_WIN_SERVICE_STATUS: dict[str, ServiceStatus] = {
    "running": ServiceStatus.RUNNING,
    "stopped": ServiceStatus.STOPPED,
    "start_pending": ServiceStatus.START_PENDING,
    "stop_pending": ServiceStatus.STOP_PENDING,
    "paused": ServiceStatus.PAUSED,
    "pause_pending": ServiceStatus.PAUSED,
    "continue_pending": ServiceStatus.START_PENDING,
}

_SYSTEMD_ACTIVE_STATUS: dict[str, ServiceStatus] = {
    "active": ServiceStatus.RUNNING,
    "reloading": ServiceStatus.RUNNING,
    "inactive": ServiceStatus.STOPPED,
    "failed": ServiceStatus.STOPPED,
    "activating": ServiceStatus.START_PENDING,
    "deactivating": ServiceStatus.STOP_PENDING,
}

_SQL_COUNTER_QUERY = (
    "SELECT cntr_value FROM sys.dm_os_performance_counters "
    "WHERE object_name LIKE :object_name AND counter_name = :counter_name"
)

Reader = Callable[[str | None], float]


class HostSampler(SamplerPort):
    """Reads the local host through psutil, sockets, httpx and SQLAlchemy."""

    def __init__(self, database: DatabaseConfig | None = None) -> None:
        self._database = database or DatabaseConfig()
        self._engine: Engine | None = None
        self._http: httpx.AsyncClient | None = None
        # (counter key) → (cumulative value, monotonic time) of the previous read
        self._previous: dict[tuple[str, ...], tuple[float, float]] = {}
        self._previous_ratio: dict[tuple[str, ...], tuple[float, float]] = {}
        self._readers: dict[CounterId, Reader] = {
            counters.PROCESSOR_TIME: self._cpu_percent,
            counters.PROCESSOR_QUEUE_LENGTH: self._queue_length,
            counters.AVAILABLE_MBYTES: self._available_mbytes,
            counters.TOTAL_MBYTES: self._total_mbytes,
            counters.PAGES_PER_SEC: self._pages_per_sec,
            counters.DISK_SEC_PER_READ: self._disk_sec_per_read,
            counters.DISK_SEC_PER_WRITE: self._disk_sec_per_write,
            counters.DISK_QUEUE_LENGTH: self._disk_queue_length,
            counters.NET_BYTES_TOTAL_PER_SEC: self._net_bytes_per_sec,
            counters.NET_OUTBOUND_ERRORS: self._net_outbound_errors,
            counters.NET_RECEIVED_ERRORS: self._net_received_errors,
            counters.NET_PACKETS_SENT_PER_SEC: self._net_packets_sent_per_sec,
            counters.NET_PACKETS_RECEIVED_PER_SEC: self._net_packets_received_per_sec,
            counters.SQL_BATCH_REQUESTS_PER_SEC: self._sql_counter(counters.SQL_BATCH_REQUESTS_PER_SEC),
            counters.SQL_COMPILATIONS_PER_SEC: self._sql_counter(counters.SQL_COMPILATIONS_PER_SEC),
            counters.SQL_LOGINS_PER_SEC: self._sql_counter(counters.SQL_LOGINS_PER_SEC),
        }

    @property
    def cpu_count(self) -> int:
        return psutil.cpu_count(logical=True) or 1

    # ── Counters ────────────────────────────────────────────────

    async def read_instant(self, counter: CounterId, instance: str | None = None) -> float:
        reader = self._readers.get(counter)
        if reader is None:
            raise SampleUnavailable(f"counter not supported on this host: {counter.category}\\{counter.name}")
        try:
            return float(await asyncio.to_thread(reader, instance))
        except SampleUnavailable:
            raise
        except (psutil.Error, OSError, KeyError, AttributeError) as exc:
            raise SampleUnavailable(f"{counter.category}\\{counter.name}: {exc}") from exc

    async def list_instances(self, category: str) -> list[str]:
        try:
            if category == counters.PHYSICAL_DISK:
                disks = await asyncio.to_thread(psutil.disk_io_counters, perdisk=True)
                return [*sorted(disks or {}), counters.TOTAL_INSTANCE]
            if category == counters.NETWORK_INTERFACE:
                nics = await asyncio.to_thread(psutil.net_io_counters, pernic=True)
                return sorted(nics or {})
        except (psutil.Error, OSError) as exc:
            raise SampleUnavailable(f"cannot enumerate {category}: {exc}") from exc
        raise SampleUnavailable(f"category not supported on this host: {category}")

    def _rate(self, key: tuple[str, ...], value: float) -> float:
        """Per-second rate of a cumulative value since the previous read (0 on first read)."""
        now = time.monotonic()
        previous = self._previous.get(key)
        self._previous[key] = (value, now)
        if previous is None:
            return 0.0
        prev_value, prev_time = previous
        elapsed = now - prev_time
        if elapsed <= 0 or value < prev_value:
            return 0.0
        return (value - prev_value) / elapsed

    def _ratio(self, key: tuple[str, ...], numerator: float, denominator: float) -> float:
        """Delta ratio of two cumulative values since the previous read (0 on first read)."""
        previous = self._previous_ratio.get(key)
        self._previous_ratio[key] = (numerator, denominator)
        if previous is None:
            return 0.0
        d_num = numerator - previous[0]
        d_den = denominator - previous[1]
        if d_den <= 0 or d_num < 0:
            return 0.0
        return d_num / d_den

    def _cpu_percent(self, _instance: str | None) -> float:
        return psutil.cpu_percent(interval=None)

    def _queue_length(self, _instance: str | None) -> float:
        # 1-minute load average minus the threads actually running.
        load_1m = psutil.getloadavg()[0]
        return max(load_1m - self.cpu_count, 0.0)

    def _available_mbytes(self, _instance: str | None) -> float:
        return psutil.virtual_memory().available / _MIB

    def _total_mbytes(self, _instance: str | None) -> float:
        return psutil.virtual_memory().total / _MIB

    def _pages_per_sec(self, _instance: str | None) -> float:
        swap = psutil.swap_memory()
        return self._rate(("pages",), (swap.sin + swap.sout) / _PAGE_SIZE)

    def _disk(self, instance: str | None) -> Any:
        if not instance:
            raise SampleUnavailable("physical disk instance name required")
        disks = psutil.disk_io_counters(perdisk=True) or {}
        if instance not in disks:
            raise SampleUnavailable(f"unknown disk: {instance}")
        return disks[instance]

    def _disk_sec_per_read(self, instance: str | None) -> float:
        io = self._disk(instance)
        return self._ratio(("read", instance or ""), io.read_time, io.read_count) / 1000.0

    def _disk_sec_per_write(self, instance: str | None) -> float:
        io = self._disk(instance)
        return self._ratio(("write", instance or ""), io.write_time, io.write_count) / 1000.0

    def _disk_queue_length(self, instance: str | None) -> float:
        # Milliseconds of outstanding I/O per elapsed second ≈ average queue depth.
        io = self._disk(instance)
        return self._rate(("queue", instance or ""), io.read_time + io.write_time) / 1000.0

    def _nic(self, instance: str | None) -> Any:
        if not instance:
            raise SampleUnavailable("network interface name required")
        nics = psutil.net_io_counters(pernic=True) or {}
        if instance not in nics:
            raise SampleUnavailable(f"unknown interface: {instance}")
        return nics[instance]

    def _net_bytes_per_sec(self, instance: str | None) -> float:
        nic = self._nic(instance)
        return self._rate(("bytes", instance or ""), nic.bytes_sent + nic.bytes_recv)

    def _net_outbound_errors(self, instance: str | None) -> float:
        return self._nic(instance).errout

    def _net_received_errors(self, instance: str | None) -> float:
        return self._nic(instance).errin

    def _net_packets_sent_per_sec(self, instance: str | None) -> float:
        return self._rate(("sent", instance or ""), self._nic(instance).packets_sent)

    def _net_packets_received_per_sec(self, instance: str | None) -> float:
        return self._rate(("recv", instance or ""), self._nic(instance).packets_recv)

    def _sql_counter(self, counter: CounterId) -> Reader:
        object_name = "%" + counter.category.split(":", 1)[-1]

        def read(_instance: str | None) -> float:
            rows = self._execute(
                _SQL_COUNTER_QUERY,
                {"object_name": object_name, "counter_name": counter.name},
            )
            if not rows:
                raise SampleUnavailable(f"SQL counter not found: {counter.name}")
            return self._rate(("sql", counter.name), float(rows[0]["cntr_value"]))

        return read

    # ── Drives ──────────────────────────────────────────────────

    async def list_drives(self) -> list[DriveStatus]:
        try:
            partitions = await asyncio.to_thread(psutil.disk_partitions, all=False)
        except (psutil.Error, OSError) as exc:
            raise SampleUnavailable(f"cannot enumerate drives: {exc}") from exc
        drives: list[DriveStatus] = []
        for part in partitions:
            opts = part.opts.lower()
            drives.append(DriveStatus(
                name=part.mountpoint,
                fixed="cdrom" not in opts and part.fstype.lower() not in _NON_FIXED_FSTYPES,
                ready=bool(part.fstype),
            ))
        return drives

    async def read_drive_usage(self, drive: str) -> DriveUsage:
        try:
            usage = await asyncio.to_thread(psutil.disk_usage, drive)
        except (psutil.Error, OSError) as exc:
            raise SampleUnavailable(f"cannot read drive {drive}: {exc}") from exc
        return DriveUsage(free_bytes=usage.free, total_bytes=usage.total)

    # ── Services & probes ───────────────────────────────────────

    async def read_status(self, service_name: str) -> ServiceStatus:
        if sys.platform == "win32":
            return await asyncio.to_thread(self._windows_service_status, service_name)
        return await self._systemd_service_status(service_name)

    @staticmethod
    def _windows_service_status(service_name: str) -> ServiceStatus:
        try:
            service = psutil.win_service_get(service_name)  # type: ignore[attr-defined]
            return _WIN_SERVICE_STATUS.get(service.status(), ServiceStatus.UNKNOWN)
        except psutil.NoSuchProcess:
            return ServiceStatus.NOT_INSTALLED
        except (psutil.Error, OSError) as exc:
            raise SampleUnavailable(f"service {service_name}: {exc}") from exc

    @staticmethod
    async def _systemd_service_status(service_name: str) -> ServiceStatus:
        try:
            proc = await asyncio.create_subprocess_exec(
                "systemctl", "show", "--property=LoadState,ActiveState", service_name,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await proc.communicate()
        except OSError as exc:
            raise SampleUnavailable(f"service {service_name}: {exc}") from exc

        props: dict[str, str] = {}
        for line in stdout.decode(errors="replace").splitlines():
            key, _, value = line.partition("=")
            props[key.strip()] = value.strip()

        if props.get("LoadState") == "not-found":
            return ServiceStatus.NOT_INSTALLED
        return _SYSTEMD_ACTIVE_STATUS.get(props.get("ActiveState", ""), ServiceStatus.UNKNOWN)

    async def probe_tcp(self, host: str, port: int, timeout_ms: int) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout_ms / 1000.0,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(follow_redirects=False)
        return self._http

    async def probe_http(self, url: str, timeout_ms: int) -> HttpProbeResult:
        started = time.perf_counter()
        try:
            response = await self._get_http().get(url, timeout=timeout_ms / 1000.0)
        except httpx.HTTPError as exc:
            raise SampleUnavailable(f"probe {url} failed: {exc}") from exc
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return HttpProbeResult(status_code=response.status_code, elapsed_ms=elapsed_ms)

    # ── Database ────────────────────────────────────────────────

    def _get_engine(self) -> Engine:
        if self._engine is None:
            connect_args: dict[str, Any] = {}
            if "pyodbc" in self._database.url:
                connect_args["timeout"] = self._database.connect_timeout_secs
            self._engine = create_engine(
                self._database.url,
                pool_pre_ping=True,
                connect_args=connect_args,
            )
        return self._engine

    def _execute(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            with self._get_engine().connect() as conn:
                result = conn.execute(text(sql), params or {})
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings()]
        except DBAPIError as exc:
            if exc.connection_invalidated or isinstance(exc, (OperationalError, InterfaceError)):
                raise DatabaseUnavailable(str(exc)) from exc
            raise SampleUnavailable(str(exc)) from exc
        except SQLAlchemyError as exc:
            raise SampleUnavailable(str(exc)) from exc

    async def query_database(self, sql: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._execute, sql)

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        logger.debug("host_sampler_closed")
