"""Alert formatting, dispatch, notification channels and report output."""

from src.monitor.channels import DiscordChannel, NotificationChannel, TelegramChannel
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.factory import create_monitor_stack
from src.monitor.formatters import (
    format_batch,
    format_collection_error,
    format_snapshot_alert,
)
from src.monitor.report import write_batch, write_metadata, write_report
from src.monitor.types import AlertMessage, Severity

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "DiscordChannel",
    "NotificationChannel",
    "Severity",
    "TelegramChannel",
    "create_monitor_stack",
    "format_batch",
    "format_collection_error",
    "format_snapshot_alert",
    "write_batch",
    "write_metadata",
    "write_report",
]
