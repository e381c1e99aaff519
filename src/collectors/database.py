"""Database collector — SQL Server connections, query latency and transaction log.

All figures come from DMV queries issued through the sampler port plus
the SQL Server performance counters. The connectivity check runs first;
if it fails the cycle is reported as unavailable and nothing else is
queried.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from src.collectors.base import BaseCollector
from src.collectors.thresholds import (
    AVG_QUERY_DURATION_THRESHOLD_MS,
    CONNECTION_FAILURES_PER_MIN_THRESHOLD,
    CONNECTION_USAGE_THRESHOLD_PCT,
    LOG_BACKUP_THRESHOLD_MINUTES,
    LOG_FILE_USAGE_THRESHOLD_PCT,
)
from src.core.types import DatabaseMetrics, MetricDomain
from src.sampling.exceptions import SampleUnavailable
from src.sampling.port import (
    SQL_BATCH_REQUESTS_PER_SEC,
    SQL_COMPILATIONS_PER_SEC,
    SQL_LOGINS_PER_SEC,
    read_or_default,
)
from src.sampling.rate import RateSampler

logger = structlog.stdlib.get_logger()

# SQL Server treats "user connections = 0" as the engine maximum.
UNLIMITED_CONNECTIONS = 32767
P95_APPROXIMATION_FACTOR = 1.5
FAILED_LOGIN_WINDOW_MINUTES = 1.0

CONNECTIVITY_SQL = "SELECT 1 AS ok"

CONNECTIONS_SQL = """
SELECT
    (SELECT CAST(value_in_use AS INT) FROM sys.configurations
      WHERE name = 'user connections') AS max_connections,
    (SELECT COUNT(*) FROM sys.dm_exec_sessions
      WHERE is_user_process = 1) AS user_connections
"""

FAILED_LOGINS_SQL = "EXEC xp_readerrorlog 0, 1, N'Login failed'"

SLOW_QUERIES_SQL = """
SELECT
    COUNT(*) AS slow_query_count,
    AVG(total_elapsed_time / execution_count / 1000.0) AS avg_duration_ms
FROM sys.dm_exec_query_stats
WHERE (total_elapsed_time / execution_count / 1000.0) > 2000
"""

LOG_FILE_SQL = """
SELECT
    CAST(SUM(CAST(FILEPROPERTY(name, 'SpaceUsed') AS BIGINT)) * 8.0 AS DECIMAL(18,2)) AS log_used_kb,
    CAST(SUM(size) * 8.0 AS DECIMAL(18,2)) AS log_total_kb
FROM sys.database_files
WHERE type_desc = 'LOG'
"""

LAST_LOG_BACKUP_SQL = """
SELECT TOP 1 backup_finish_date
FROM msdb.dbo.backupset
WHERE database_name = DB_NAME() AND type = 'L'
ORDER BY backup_finish_date DESC
"""


def _first_row(rows: list[dict[str, Any]]) -> dict[str, Any]:
    return rows[0] if rows else {}


def _number(row: dict[str, Any], key: str) -> float:
    value = row.get(key)
    return 0.0 if value is None else float(value)


class DatabaseCollector(BaseCollector[DatabaseMetrics]):
    """Three independent alerts.

    - connection: usage > 85% AND failed logins in the last minute > 5
    - query performance: average slow-query duration > 2000 ms
    - transaction log: log usage > 85% AND last log backup > 30 minutes ago
    """

    domain = MetricDomain.DATABASE
    snapshot_type = DatabaseMetrics
    label = "database"

    def __init__(
        self,
        sampler: RateSampler,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__(sampler)
        self._now = now

    async def _query(self, sql: str, reading: str) -> list[dict[str, Any]]:
        return await read_or_default(self.port.query_database(sql), [], reading=reading)

    def _minutes_since(self, moment: datetime) -> float:
        now = self._now()
        if moment.tzinfo is None and now.tzinfo is not None:
            moment = moment.astimezone()
        elif moment.tzinfo is not None and now.tzinfo is None:
            now = now.astimezone()
        return (now - moment).total_seconds() / 60.0

    async def _connections(self) -> dict[str, Any]:
        row = _first_row(await self._query(CONNECTIONS_SQL, "db:connections"))
        max_connections = int(_number(row, "max_connections")) or UNLIMITED_CONNECTIONS
        user_connections = int(_number(row, "user_connections"))
        return {
            "max_connections": max_connections,
            "user_connections": user_connections,
            "connection_usage_percentage": round(user_connections / max_connections * 100, 2),
        }

    async def _failed_logins_last_minute(self) -> int:
        rows = await self._query(FAILED_LOGINS_SQL, "db:error_log")
        count = 0
        for row in rows:
            logged_at = row.get("LogDate")
            if not isinstance(logged_at, datetime):
                continue
            if self._minutes_since(logged_at) <= FAILED_LOGIN_WINDOW_MINUTES:
                count += 1
        return count

    async def _query_performance(self) -> dict[str, Any]:
        row = _first_row(await self._query(SLOW_QUERIES_SQL, "db:query_stats"))
        avg_ms = round(_number(row, "avg_duration_ms"), 2)
        return {
            "slow_query_count": int(_number(row, "slow_query_count")),
            "avg_query_duration_ms": avg_ms,
            "query_duration_95th_percentile_ms": round(avg_ms * P95_APPROXIMATION_FACTOR, 2),
        }

    async def _transaction_log(self) -> dict[str, Any]:
        row = _first_row(await self._query(LOG_FILE_SQL, "db:log_file"))
        used_kb = round(_number(row, "log_used_kb"), 2)
        total_kb = round(_number(row, "log_total_kb"), 2)
        usage_pct = round(used_kb / total_kb * 100, 2) if total_kb > 0 else 0.0

        backup_row = _first_row(await self._query(LAST_LOG_BACKUP_SQL, "db:log_backup"))
        last_backup = backup_row.get("backup_finish_date")
        minutes_since = None
        if isinstance(last_backup, datetime):
            minutes_since = round(self._minutes_since(last_backup), 2)
        else:
            last_backup = None

        return {
            "log_file_used_size_kb": used_kb,
            "log_file_total_size_kb": total_kb,
            "log_file_usage_percentage": usage_pct,
            "last_log_backup_time": last_backup,
            "minutes_since_last_log_backup": minutes_since,
        }

    async def _collect(self) -> DatabaseMetrics:
        try:
            await self.port.query_database(CONNECTIVITY_SQL)
        except SampleUnavailable as exc:
            logger.warning("database_unavailable", error=str(exc))
            return DatabaseMetrics(
                database_available=False,
                error_message=f"SQL Server connection error: {exc}",
            )

        fields: dict[str, Any] = {"database_available": True}
        fields.update(await self._connections())
        fields["connection_failures_per_minute"] = await self._failed_logins_last_minute()
        fields.update(await self._query_performance())
        fields.update(await self._transaction_log())

        batch, compilations, logins = await self._sampler.sample_many([
            (SQL_BATCH_REQUESTS_PER_SEC, None),
            (SQL_COMPILATIONS_PER_SEC, None),
            (SQL_LOGINS_PER_SEC, None),
        ])
        fields["batch_requests_per_sec"] = round(batch, 2)
        fields["sql_compilations_per_sec"] = round(compilations, 2)
        fields["logins_per_sec"] = round(logins, 2)

        messages: list[str] = []

        connection_alert = (
            fields["connection_usage_percentage"] > CONNECTION_USAGE_THRESHOLD_PCT
            and fields["connection_failures_per_minute"] > CONNECTION_FAILURES_PER_MIN_THRESHOLD
        )
        if connection_alert:
            messages.append(
                "Database Connection Alert: Connection usage at "
                f"{fields['connection_usage_percentage']}% "
                f"(threshold: {CONNECTION_USAGE_THRESHOLD_PCT}%) and "
                f"{fields['connection_failures_per_minute']} failures/min "
                f"(threshold: {CONNECTION_FAILURES_PER_MIN_THRESHOLD})."
            )

        query_alert = fields["avg_query_duration_ms"] > AVG_QUERY_DURATION_THRESHOLD_MS
        if query_alert:
            messages.append(
                "Database Query Performance Alert: Average query duration at "
                f"{fields['avg_query_duration_ms']}ms "
                f"(threshold: {AVG_QUERY_DURATION_THRESHOLD_MS}ms)."
            )

        minutes_since = fields["minutes_since_last_log_backup"]
        log_alert = (
            fields["log_file_usage_percentage"] > LOG_FILE_USAGE_THRESHOLD_PCT
            and minutes_since is not None
            and minutes_since > LOG_BACKUP_THRESHOLD_MINUTES
        )
        if log_alert:
            messages.append(
                "Transaction Log Alert: Log file usage at "
                f"{fields['log_file_usage_percentage']}% "
                f"(threshold: {LOG_FILE_USAGE_THRESHOLD_PCT}%) and {minutes_since} minutes "
                f"since last backup (threshold: {LOG_BACKUP_THRESHOLD_MINUTES} minutes)"
            )

        return DatabaseMetrics(
            **fields,
            connection_alert_triggered=connection_alert,
            query_performance_alert_triggered=query_alert,
            transaction_log_alert_triggered=log_alert,
            alert_triggered=connection_alert or query_alert or log_alert,
            alert_message=" ".join(messages) or None,
        )
