"""Static alert thresholds. Every predicate compares strictly against these."""

from __future__ import annotations

# CPU
CPU_THRESHOLD_PCT = 90.0
QUEUE_LENGTH_PER_CORE_THRESHOLD = 2.0

# Memory
AVAILABLE_MEMORY_THRESHOLD_PCT = 10.0
PAGES_PER_SEC_THRESHOLD = 2000.0

# Disk space
FREE_SPACE_THRESHOLD_PCT = 15.0
FREE_SPACE_THRESHOLD_GB = 5.0

# Disk I/O
DISK_SEC_THRESHOLD_MS = 25.0
DISK_QUEUE_LENGTH_MULTIPLIER = 2.0

# Network
NETWORK_ERROR_THRESHOLD_PCT = 1.0

# Web server
ERROR_5XX_THRESHOLD_PCT = 2.0
RESPONSE_TIME_THRESHOLD_MS = 2000.0
HEALTH_PROBE_FAILURE_THRESHOLD = 3

# Database
CONNECTION_USAGE_THRESHOLD_PCT = 85.0
CONNECTION_FAILURES_PER_MIN_THRESHOLD = 5
AVG_QUERY_DURATION_THRESHOLD_MS = 2000.0
LOG_FILE_USAGE_THRESHOLD_PCT = 85.0
LOG_BACKUP_THRESHOLD_MINUTES = 30.0
