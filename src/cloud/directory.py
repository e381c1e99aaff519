"""Per-region memoized instance directory with reverse lookup by IP."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from src.cloud.enumerator import InstanceEnumerator
from src.cloud.exceptions import EnumerationError
from src.core.types import InstanceRecord

logger = structlog.stdlib.get_logger()

Predicate = Callable[[InstanceRecord], bool]


class InstanceDirectory:
    """Caches the instance list of each region after its first enumeration.

    ``list_instances`` is the only method that fetches. All lookups scan
    regions already in the cache. A region stays cached until
    ``clear_region`` or ``clear_all``.
    """

    def __init__(self, enumerator: InstanceEnumerator) -> None:
        self._enumerator = enumerator
        self._index: dict[str, list[InstanceRecord]] = {}
        self._lock = asyncio.Lock()

    async def list_instances(self, region: str) -> list[InstanceRecord]:
        """Return the instances of *region*, enumerating on first use.

        A failed enumeration is logged and yields an empty list without
        being cached, so the next call tries again.
        """
        if not region or not region.strip():
            return []

        # Fast path: region already indexed
        cached = self._index.get(region)
        if cached is not None:
            return list(cached)

        async with self._lock:
            # Double-check after acquiring lock
            cached = self._index.get(region)
            if cached is not None:
                return list(cached)

            try:
                records = await self._enumerator.enumerate(region)
            except EnumerationError as exc:
                logger.error("instance_enumeration_failed", region=region, error=str(exc))
                return []

            self._index[region] = list(records)
            logger.info("instances_cached", region=region, count=len(records))
            return list(records)

    def _scan(self, region: str | None = None) -> list[InstanceRecord]:
        if region is not None and region.strip():
            return list(self._index.get(region, []))
        return [r for records in self._index.values() for r in records]

    @staticmethod
    def _require_ip(ip: str, label: str) -> None:
        if not ip or not ip.strip():
            raise ValueError(f"{label} cannot be empty")

    def find_by_private_ip(self, ip: str) -> InstanceRecord | None:
        self._require_ip(ip, "Private IP")
        return self.find_first_by(lambda r: r.private_ip == ip)

    def find_by_public_ip(self, ip: str) -> InstanceRecord | None:
        self._require_ip(ip, "Public IP")
        return self.find_first_by(lambda r: r.public_ip == ip)

    def find_by_ip(self, ip: str) -> InstanceRecord | None:
        """Match either the private or the public address."""
        self._require_ip(ip, "IP address")
        return self.find_first_by(lambda r: ip in (r.private_ip, r.public_ip))

    def find_by(self, predicate: Predicate, region: str | None = None) -> list[InstanceRecord]:
        """All cached instances matching *predicate*, optionally in one region."""
        return [r for r in self._scan(region) if predicate(r)]

    def find_first_by(
        self, predicate: Predicate, region: str | None = None
    ) -> InstanceRecord | None:
        return next((r for r in self._scan(region) if predicate(r)), None)

    def cached_instances(self, region: str) -> list[InstanceRecord] | None:
        """The cached list for *region*, or None if it was never enumerated."""
        records = self._index.get(region)
        return None if records is None else list(records)

    def all_cached(self) -> dict[str, list[InstanceRecord]]:
        return {region: list(records) for region, records in self._index.items()}

    def cached_regions(self) -> list[str]:
        return list(self._index)

    def clear_region(self, region: str) -> bool:
        """Drop one region; True if it was cached."""
        removed = self._index.pop(region, None) is not None
        if removed:
            logger.info("instance_cache_cleared", region=region)
        return removed

    def clear_all(self) -> None:
        self._index.clear()
        logger.info("instance_cache_cleared", region="*")

    def __contains__(self, region: str) -> bool:
        return region in self._index

    def __len__(self) -> int:
        return len(self._index)
