"""Central alert dispatcher — routes host alerts to channels with throttling."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from src.core.types import MonitoringBatch
from src.monitor.channels import NotificationChannel
from src.monitor.formatters import format_batch
from src.monitor.types import AlertMessage, Severity

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Routes batch alerts to notification channels.

    - Every message is written to *decision_logger*.
    - DEBUG messages are log-only.
    - INFO/WARNING messages are throttled per domain and title, so a
      condition that persists across cycles is re-sent at most once per
      ``throttle_secs``.
    - CRITICAL messages bypass the throttle.
    """

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        throttle_secs: float = 300.0,
        host: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channels: list[NotificationChannel] = channels or []
        self._throttle_secs = throttle_secs
        self._host = host
        self._clock = clock
        self._last_sent: dict[str, float] = {}

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    # ── Entry points ────────────────────────────────────────────

    async def on_batch(self, batch: MonitoringBatch) -> int:
        """Route every alert of *batch*; returns how many reached channels."""
        sent = 0
        for msg in format_batch(batch, self._host):
            if await self._handle(msg):
                sent += 1
        return sent

    async def send(self, msg: AlertMessage) -> None:
        """Dispatch an AlertMessage directly (bypasses throttle)."""
        self._log_decision(msg, dispatched=True)
        await self._dispatch_to_channels(msg)

    # ── Internal routing ────────────────────────────────────────

    async def _handle(self, msg: AlertMessage) -> bool:
        dispatched = self._should_dispatch(msg)
        self._log_decision(msg, dispatched=dispatched)
        if dispatched:
            await self._dispatch_to_channels(msg)
        return dispatched

    def _should_dispatch(self, msg: AlertMessage) -> bool:
        if msg.severity == Severity.DEBUG:
            return False

        now = self._clock()
        if msg.severity == Severity.CRITICAL:
            self._last_sent[msg.throttle_key] = now
            return True

        last = self._last_sent.get(msg.throttle_key, -float("inf"))
        if now - last < self._throttle_secs:
            return False
        self._last_sent[msg.throttle_key] = now
        return True

    def _log_decision(self, msg: AlertMessage, dispatched: bool) -> None:
        decision_logger.info(
            "decision",
            severity=msg.severity.name,
            title=msg.title,
            body=msg.body,
            domain=msg.domain,
            host=msg.host,
            dispatched=dispatched,
            fields=msg.fields,
        )

    async def _dispatch_to_channels(self, msg: AlertMessage) -> None:
        for ch in self._channels:
            try:
                await ch.send(msg)
            except Exception:
                logger.exception(
                    "channel_dispatch_error",
                    channel=type(ch).__name__,
                    title=msg.title,
                )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=type(ch).__name__)
