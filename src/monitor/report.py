"""JSON report output — stdout plus a timestamped file."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

import structlog
from pydantic import BaseModel

from src.core.config import OutputConfig
from src.core.types import InstanceMetadata, MonitoringBatch

logger = structlog.stdlib.get_logger()

MONITORING_PREFIX = "monitoring_data"
METADATA_PREFIX = "instance_metadata"


def report_filename(prefix: str, now: datetime) -> str:
    return f"{prefix}_{now:%Y%m%d_%H%M%S}.json"


def render(document: BaseModel) -> str:
    return document.model_dump_json(indent=2)


def write_report(
    document: BaseModel,
    prefix: str,
    output: OutputConfig | None = None,
    *,
    stream: TextIO | None = None,
    now: datetime | None = None,
) -> Path | None:
    """Print *document* as indented JSON and save it under ``output.directory``.

    Returns the written path, or None when file output is disabled.
    """
    output = output or OutputConfig()
    text = render(document)
    print(text, file=stream or sys.stdout)

    if not output.write_file:
        return None

    directory = Path(output.directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_filename(prefix, now or datetime.now())
    path.write_text(text + "\n", encoding="utf-8")
    logger.info("report_saved", path=str(path), bytes=len(text))
    return path


def write_batch(batch: MonitoringBatch, output: OutputConfig | None = None, **kwargs: Any) -> Path | None:
    return write_report(batch, MONITORING_PREFIX, output, **kwargs)


def write_metadata(
    metadata: InstanceMetadata, output: OutputConfig | None = None, **kwargs: Any
) -> Path | None:
    return write_report(metadata, METADATA_PREFIX, output, **kwargs)


def log_metadata_summary(metadata: InstanceMetadata) -> None:
    """Human-oriented summary of an identity document, to the log stream."""
    logger.info(
        "instance_metadata_summary",
        instance_id=metadata.instance_id,
        instance_type=metadata.instance_type,
        region=metadata.region,
        availability_zone=metadata.availability_zone,
        public_ip=metadata.public_ipv4,
        private_ip=metadata.local_ipv4,
        ami_id=metadata.ami_id,
        security_groups=metadata.security_groups,
        network_interfaces=len(metadata.network_interfaces),
        collection_time=metadata.collection_time.isoformat(),
    )


def log_batch_summary(batch: MonitoringBatch) -> None:
    """One log line per triggered alert plus a batch total."""
    for domain, snapshot in batch.snapshots().items():
        if snapshot.alert_triggered:
            logger.warning("alert", domain=domain, message=snapshot.alert_message)
        if snapshot.error_message:
            logger.warning("collection_error", domain=domain, error=snapshot.error_message)
    logger.info(
        "batch_summary",
        timestamp=batch.collection_timestamp.isoformat(),
        alerts=batch.alert_count,
        error=batch.error_message,
    )
