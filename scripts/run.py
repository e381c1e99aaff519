#!/usr/bin/env python3
"""Host monitoring agent entrypoint.

Usage::

    # One collection cycle: JSON to stdout + monitoring_data_<ts>.json
    python scripts/run.py collect

    # Collect every 60 seconds until interrupted
    python scripts/run.py collect --interval 60

    # Instance metadata document: JSON to stdout + instance_metadata_<ts>.json
    python scripts/run.py metadata

    # Identity of this instance only
    python scripts/run.py identity

    # Enumerate instances of the configured regions, optionally look up an IP
    python scripts/run.py instances --region us-east-1 --ip 10.0.0.12

    # Custom config file / log level
    python scripts/run.py --config config/settings.yaml --log-level DEBUG collect
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import signal
import sys

import structlog

from src.cloud.directory import InstanceDirectory
from src.cloud.enumerator import Ec2InstanceEnumerator
from src.cloud.exceptions import MetadataUnavailableError
from src.cloud.metadata import MetadataClient
from src.collectors.aggregator import CollectionAggregator
from src.core.config import Settings, load_settings
from src.core.logging import bind_agent_context, setup_logging
from src.monitor.factory import create_monitor_stack
from src.monitor.report import (
    log_batch_summary,
    log_metadata_summary,
    write_batch,
    write_metadata,
)
from src.sampling.host import HostSampler

logger = structlog.get_logger(__name__)


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass


# ── collect ─────────────────────────────────────────────────────


async def collect(settings: Settings, args: argparse.Namespace) -> int:
    port = HostSampler(settings.database)
    aggregator = CollectionAggregator.from_settings(port, settings)
    dispatcher = create_monitor_stack(settings.alerts)

    stop_event = asyncio.Event()
    if args.interval:
        _install_stop_handlers(stop_event)

    logger.info(
        "agent_starting",
        collectors=len(aggregator.collectors),
        cpu_mode=settings.cpu.mode,
        interval_secs=args.interval,
        channels=len(dispatcher.channels),
    )

    code = 0
    try:
        while True:
            batch = await aggregator.collect_all()
            log_batch_summary(batch)
            write_batch(batch, settings.output)
            await dispatcher.on_batch(batch)
            code = 1 if batch.error_message else 0

            if not args.interval:
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=args.interval)
            if stop_event.is_set():
                break
    finally:
        await dispatcher.close()
        await port.close()

    logger.info("agent_stopped")
    return code


# ── metadata / identity ─────────────────────────────────────────


async def metadata(settings: Settings, args: argparse.Namespace) -> int:
    async with MetadataClient(settings.metadata) as client:
        document = await client.collect_identity()

    if not document.is_success:
        logger.error("metadata_unavailable", error=document.error_message)
        print(f"ERROR: {document.error_message}", file=sys.stderr)
        return 1

    write_metadata(document, settings.output)
    log_metadata_summary(document)
    return 0


async def identity(settings: Settings, args: argparse.Namespace) -> int:
    async with MetadataClient(settings.metadata) as client:
        try:
            current = await client.current_instance_identity()
        except MetadataUnavailableError as exc:
            logger.error("identity_unavailable", error=str(exc))
            print(
                "Could not retrieve instance metadata. Ensure this agent is "
                f"running on a cloud instance: {exc}",
                file=sys.stderr,
            )
            return 1
    print(current.model_dump_json(indent=2))
    return 0


# ── instances ───────────────────────────────────────────────────


async def instances(settings: Settings, args: argparse.Namespace) -> int:
    regions = args.region or settings.aws.regions
    directory = InstanceDirectory(Ec2InstanceEnumerator(settings.aws))

    for region in regions:
        await directory.list_instances(region)

    if args.ip:
        record = directory.find_by_ip(args.ip)
        if record is None:
            logger.warning("instance_not_found", ip=args.ip, regions=regions)
            return 1
        print(record.model_dump_json(indent=2))
        return 0

    listing = {
        region: [r.model_dump(mode="json") for r in records]
        for region, records in directory.all_cached().items()
    }
    print(json.dumps(listing, indent=2))
    return 0


_COMMANDS = {
    "collect": collect,
    "metadata": metadata,
    "identity": identity,
    "instances": instances,
}


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)
    bind_agent_context(command=args.command)
    return await _COMMANDS[args.command](settings, args)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Collect host health metrics and cloud instance metadata.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    collect_parser = sub.add_parser("collect", help="Run the metric collectors")
    collect_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Repeat every N seconds until interrupted (default: run once)",
    )

    sub.add_parser("metadata", help="Collect the instance metadata document")
    sub.add_parser("identity", help="Print this instance's id, zone, region and type")

    instances_parser = sub.add_parser("instances", help="Enumerate cloud instances")
    instances_parser.add_argument(
        "--region",
        action="append",
        default=None,
        help="Region to enumerate (repeatable; default: aws.regions from config)",
    )
    instances_parser.add_argument(
        "--ip",
        default=None,
        help="Print only the instance owning this private or public IP",
    )

    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
