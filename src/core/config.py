"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class SamplingConfig(BaseModel):
    """Sampler port timing configuration."""

    warmup_delay_ms: int = 100
    tcp_timeout_ms: int = 1000
    http_timeout_ms: int = 5000
    probe_host: str = "localhost"


class CpuMode(StrEnum):
    """How the CPU collector averages processor time."""

    ROLLING = "rolling"  # 30 samples, 10s apart, averaged
    SINGLE = "single"  # one warm-up sample per cycle


class CpuConfig(BaseModel):
    """CPU collector configuration."""

    mode: CpuMode = CpuMode.ROLLING
    window_size: int = 30
    sample_interval_secs: float = 10.0


class WebServerConfig(BaseModel):
    """Web server collector configuration."""

    service_name: str = "W3SVC"
    http_port: int = 80
    https_port: int = 443
    health_url: str = "http://localhost/health"
    probe_window: int = 20


class DatabaseConfig(BaseModel):
    """Database collector configuration (SQLAlchemy URL)."""

    url: str = (
        "mssql+pyodbc://@localhost/master"
        "?driver=ODBC+Driver+17+for+SQL+Server&trusted_connection=yes"
    )
    connect_timeout_secs: int = 5


class MonitoredService(BaseModel):
    """A service/port pair watched by the services collector."""

    service_name: str
    display_name: str = ""
    port: int | None = None


class MetadataConfig(BaseModel):
    """Instance metadata endpoint configuration."""

    base_url: str = "http://169.254.169.254/latest/"
    token_ttl_secs: int = 21600
    refresh_margin_secs: float = 60.0
    timeout_secs: float = 10.0


class AwsConfig(BaseModel):
    """AWS credentials for instance enumeration.

    Empty keys fall back to the boto3 default credential chain.
    """

    access_key_id: str = ""
    secret_access_key: SecretStr = SecretStr("")
    regions: list[str] = ["us-east-1"]


class OutputConfig(BaseModel):
    """Report output configuration."""

    directory: str = "."
    write_file: bool = True


class TelegramConfig(BaseModel):
    """Telegram bot notification configuration."""

    enabled: bool = False
    bot_token: SecretStr = SecretStr("")
    chat_id: str = ""


class DiscordConfig(BaseModel):
    """Discord webhook notification configuration."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")


class AlertsConfig(BaseModel):
    """Alert notification configuration."""

    throttle_secs: float = 300.0
    telegram: TelegramConfig = TelegramConfig()
    discord: DiscordConfig = DiscordConfig()


def default_services() -> list[MonitoredService]:
    return [
        MonitoredService(
            service_name="W3SVC",
            display_name="World Wide Web Publishing Service",
            port=80,
        ),
        MonitoredService(
            service_name="W3SVC",
            display_name="World Wide Web Publishing Service (HTTPS)",
            port=443,
        ),
        MonitoredService(
            service_name="MSSQLSERVER",
            display_name="SQL Server (MSSQLSERVER)",
            port=1433,
        ),
        MonitoredService(
            service_name="SQLSERVERAGENT",
            display_name="SQL Server Agent (MSSQLSERVER)",
            port=None,
        ),
    ]


class Settings(BaseModel):
    """Root settings container."""

    logging: LoggingConfig = LoggingConfig()
    sampling: SamplingConfig = SamplingConfig()
    cpu: CpuConfig = CpuConfig()
    web_server: WebServerConfig = WebServerConfig()
    database: DatabaseConfig = DatabaseConfig()
    services: list[MonitoredService] = default_services()
    metadata: MetadataConfig = MetadataConfig()
    aws: AwsConfig = AwsConfig()
    output: OutputConfig = OutputConfig()
    alerts: AlertsConfig = AlertsConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
