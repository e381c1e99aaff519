"""Metric collectors and the concurrent aggregator."""

from src.collectors.aggregator import CollectionAggregator
from src.collectors.base import BaseCollector
from src.collectors.cpu import CpuCollector
from src.collectors.database import DatabaseCollector
from src.collectors.disk import DiskCollector
from src.collectors.disk_io import DiskIoCollector
from src.collectors.memory import MemoryCollector
from src.collectors.network import NetworkCollector
from src.collectors.services import ServiceCollector
from src.collectors.web_server import WebServerCollector

__all__ = [
    "BaseCollector",
    "CollectionAggregator",
    "CpuCollector",
    "DatabaseCollector",
    "DiskCollector",
    "DiskIoCollector",
    "MemoryCollector",
    "NetworkCollector",
    "ServiceCollector",
    "WebServerCollector",
]
