"""Convenience factory for wiring the alert notification stack."""

from __future__ import annotations

import socket

from src.core.config import AlertsConfig
from src.monitor.channels import (
    DiscordChannel,
    NotificationChannel,
    TelegramChannel,
)
from src.monitor.dispatcher import AlertDispatcher


def create_monitor_stack(config: AlertsConfig, host: str | None = None) -> AlertDispatcher:
    """Build a dispatcher with every enabled channel.

    With no channel enabled the dispatcher still writes the decision log.
    """
    channels: list[NotificationChannel] = []

    if config.telegram.enabled:
        channels.append(TelegramChannel(config.telegram))

    if config.discord.enabled:
        channels.append(DiscordChannel(config.discord))

    return AlertDispatcher(
        channels=channels,
        throttle_secs=config.throttle_secs,
        host=host if host is not None else socket.gethostname(),
    )
