"""Notification channels — Telegram and Discord delivery of host alerts."""

from __future__ import annotations

import abc
from datetime import UTC, datetime
from html import escape as html_escape
from typing import Any

import aiohttp
import structlog

from src.core.config import DiscordConfig, TelegramConfig
from src.monitor.types import AlertMessage, Severity

logger = structlog.get_logger(__name__)

# Discord embed colours keyed by severity.
_DISCORD_COLORS: dict[Severity, int] = {
    Severity.DEBUG: 0x95A5A6,    # grey
    Severity.INFO: 0x3498DB,     # blue
    Severity.WARNING: 0xF39C12,  # orange
    Severity.CRITICAL: 0xE74C3C, # red
}

TELEGRAM_MAX_TEXT = 4096
DISCORD_MAX_DESCRIPTION = 4096
DISCORD_MAX_FIELD_VALUE = 1024
DISCORD_MAX_FIELDS = 25


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> bool:
        """Send an alert message. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class _HttpChannel(NotificationChannel):
    """Channel that POSTs JSON through a lazily opened aiohttp session."""

    name = "http"
    ok_statuses: tuple[int, ...] = (200,)

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _post(self, url: str, payload: dict[str, Any]) -> bool:
        try:
            session = self._get_session()
            async with session.post(url, json=payload) as resp:
                if resp.status in self.ok_statuses:
                    return True
                body = await resp.text()
                logger.warning(
                    f"{self.name}_send_failed",
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except Exception:
            logger.exception(f"{self.name}_send_error")
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class TelegramChannel(_HttpChannel):
    """Delivers alerts via the Telegram Bot API (HTML parse mode)."""

    name = "telegram"

    def __init__(self, config: TelegramConfig) -> None:
        super().__init__()
        self._token = config.bot_token.get_secret_value()
        self._chat_id = config.chat_id

    @staticmethod
    def render(msg: AlertMessage) -> str:
        header = f"[{msg.severity.name}] {msg.title}"
        if msg.host:
            header += f" @ {msg.host}"
        parts = [f"<b>{html_escape(header)}</b>"]
        if msg.body:
            parts.append(html_escape(msg.body))
        if msg.fields:
            parts.append("\n".join(
                f"  <code>{html_escape(k)}</code>: {html_escape(v)}"
                for k, v in msg.fields.items()
            ))
        return truncate("\n".join(parts), TELEGRAM_MAX_TEXT)

    async def send(self, msg: AlertMessage) -> bool:
        url = f"https://api.telegram.org/bot{self._token}/sendMessage"
        return await self._post(url, {
            "chat_id": self._chat_id,
            "text": self.render(msg),
            "parse_mode": "HTML",
        })


class DiscordChannel(_HttpChannel):
    """Delivers alerts via a Discord webhook with colour-coded embeds."""

    name = "discord"
    ok_statuses = (200, 204)

    def __init__(self, config: DiscordConfig) -> None:
        super().__init__()
        self._webhook_url = config.webhook_url.get_secret_value()

    @staticmethod
    def render(msg: AlertMessage) -> dict[str, Any]:
        embed: dict[str, Any] = {
            "title": f"[{msg.severity.name}] {msg.title}",
            "color": _DISCORD_COLORS.get(msg.severity, 0x95A5A6),
            "timestamp": datetime.fromtimestamp(msg.timestamp, UTC).isoformat(),
        }
        if msg.body:
            embed["description"] = truncate(msg.body, DISCORD_MAX_DESCRIPTION)
        if msg.fields:
            embed["fields"] = [
                {"name": k, "value": truncate(v, DISCORD_MAX_FIELD_VALUE), "inline": True}
                for k, v in list(msg.fields.items())[:DISCORD_MAX_FIELDS]
            ]
        if msg.host:
            embed["footer"] = {"text": msg.host}
        return embed

    async def send(self, msg: AlertMessage) -> bool:
        return await self._post(self._webhook_url, {"embeds": [self.render(msg)]})
