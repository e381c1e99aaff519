"""Alert types for the notification subsystem."""

from __future__ import annotations

import time
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, Field


class Severity(IntEnum):
    """Alert severity, ordered so comparisons work naturally."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    CRITICAL = 3


class AlertMessage(BaseModel):
    """One host alert, rendered from a metric snapshot."""

    severity: Severity
    title: str
    body: str = ""
    domain: str = ""
    host: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def throttle_key(self) -> str:
        """Alerts sharing a key are throttled together."""
        return f"{self.domain}:{self.title}"
