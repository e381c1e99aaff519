"""Sampler port — the narrow interface collectors read the host through.

Every read may raise :class:`SampleUnavailable`; collectors substitute a
default and carry on.
"""

from __future__ import annotations

import abc
from collections.abc import Awaitable
from typing import Any, NamedTuple, TypeVar

import structlog
from pydantic import BaseModel

from src.core.types import ServiceStatus
from src.sampling.exceptions import SampleUnavailable

logger = structlog.stdlib.get_logger()

T = TypeVar("T")


class CounterId(NamedTuple):
    """A performance counter, addressed by category and counter name."""

    category: str
    name: str


TOTAL_INSTANCE = "_Total"

# ── Counter catalogue ───────────────────────────────────────────

PROCESSOR_TIME = CounterId("Processor", "% Processor Time")
PROCESSOR_QUEUE_LENGTH = CounterId("System", "Processor Queue Length")

AVAILABLE_MBYTES = CounterId("Memory", "Available MBytes")
TOTAL_MBYTES = CounterId("Memory", "Total MBytes")
PAGES_PER_SEC = CounterId("Memory", "Pages/sec")

PHYSICAL_DISK = "PhysicalDisk"
DISK_SEC_PER_READ = CounterId(PHYSICAL_DISK, "Avg. Disk sec/Read")
DISK_SEC_PER_WRITE = CounterId(PHYSICAL_DISK, "Avg. Disk sec/Write")
DISK_QUEUE_LENGTH = CounterId(PHYSICAL_DISK, "Avg. Disk Queue Length")

NETWORK_INTERFACE = "Network Interface"
NET_BYTES_TOTAL_PER_SEC = CounterId(NETWORK_INTERFACE, "Bytes Total/sec")
NET_OUTBOUND_ERRORS = CounterId(NETWORK_INTERFACE, "Packets Outbound Errors")
NET_RECEIVED_ERRORS = CounterId(NETWORK_INTERFACE, "Packets Received Errors")
NET_PACKETS_SENT_PER_SEC = CounterId(NETWORK_INTERFACE, "Packets Sent/sec")
NET_PACKETS_RECEIVED_PER_SEC = CounterId(NETWORK_INTERFACE, "Packets Received/sec")

WEB_REQUESTS_PER_SEC = CounterId("Web Service", "Total Method Requests/sec")
WEB_CURRENT_CONNECTIONS = CounterId("Web Service", "Current Connections")
WEB_CONNECTION_ATTEMPTS_PER_SEC = CounterId("Web Service", "Connection Attempts/sec")

SQL_STATISTICS = "SQLServer:SQL Statistics"
SQL_BATCH_REQUESTS_PER_SEC = CounterId(SQL_STATISTICS, "Batch Requests/sec")
SQL_COMPILATIONS_PER_SEC = CounterId(SQL_STATISTICS, "SQL Compilations/sec")
SQL_LOGINS_PER_SEC = CounterId("SQLServer:General Statistics", "Logins/sec")


# ── Value types ─────────────────────────────────────────────────


class DriveStatus(BaseModel):
    """A mounted drive as enumerated by the port."""

    name: str
    fixed: bool = True
    ready: bool = True


class DriveUsage(BaseModel):
    """Space figures of one drive, in bytes."""

    free_bytes: int
    total_bytes: int


class HttpProbeResult(BaseModel):
    """Outcome of a single HTTP probe."""

    status_code: int
    elapsed_ms: float


class SamplerPort(abc.ABC):
    """Read-only access to OS counters, services, sockets and the database."""

    @property
    @abc.abstractmethod
    def cpu_count(self) -> int:
        """Number of logical processors."""

    @abc.abstractmethod
    async def read_instant(self, counter: CounterId, instance: str | None = None) -> float:
        """Read the current value of a counter.

        Rate counters return a since-last-read value, so the first read
        after opening a counter is not meaningful.
        """

    @abc.abstractmethod
    async def list_instances(self, category: str) -> list[str]:
        """Return the instance names of a multi-instance counter category."""

    @abc.abstractmethod
    async def list_drives(self) -> list[DriveStatus]:
        """Enumerate mounted drives."""

    @abc.abstractmethod
    async def read_drive_usage(self, drive: str) -> DriveUsage:
        """Read free/total space of a drive."""

    @abc.abstractmethod
    async def read_status(self, service_name: str) -> ServiceStatus:
        """Return the service-control status of a named service."""

    @abc.abstractmethod
    async def probe_tcp(self, host: str, port: int, timeout_ms: int) -> bool:
        """Return True if a TCP connection to host:port succeeds in time."""

    @abc.abstractmethod
    async def probe_http(self, url: str, timeout_ms: int) -> HttpProbeResult:
        """Issue a GET and report status code and elapsed time."""

    @abc.abstractmethod
    async def query_database(self, sql: str) -> list[dict[str, Any]]:
        """Run a SQL batch and return its rows as dicts."""

    async def close(self) -> None:  # noqa: B027
        """Release held resources (clients, engines)."""


async def read_or_default(read: Awaitable[T], default: T, *, reading: str) -> T:
    """Await a port read, substituting *default* if the sample is unavailable."""
    try:
        return await read
    except SampleUnavailable as exc:
        logger.warning("sample_unavailable", reading=reading, error=str(exc))
        return default
