"""Instance metadata client (IMDSv2 with v1 fallback)."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from types import TracebackType

import httpx
import structlog

from src.cloud.exceptions import MetadataUnavailableError
from src.cloud.token_cache import TOKEN_HEADER, MetadataTokenCache
from src.core.config import MetadataConfig
from src.core.types import (
    NOT_AVAILABLE,
    InstanceIdentity,
    InstanceMetadata,
    NetworkInterfaceMetadata,
)

logger = structlog.stdlib.get_logger()

# InstanceMetadata field → meta-data path
_IDENTITY_PATHS: dict[str, str] = {
    "instance_id": "instance-id",
    "instance_type": "instance-type",
    "availability_zone": "placement/availability-zone",
    "region": "placement/region",
    "local_ipv4": "local-ipv4",
    "public_hostname": "public-hostname",
    "public_ipv4": "public-ipv4",
    "name": "tags/instance/Name",
    "ami_id": "ami-id",
    "security_groups": "security-groups",
}

# NetworkInterfaceMetadata field → path under network/interfaces/macs/<mac>/
_INTERFACE_PATHS: dict[str, str] = {
    "device_number": "device-number",
    "interface_id": "interface-id",
    "local_hostname": "local-hostname",
    "local_ipv4s": "local-ipv4s",
    "public_hostname": "public-hostname",
    "public_ipv4s": "public-ipv4s",
    "security_group_ids": "security-group-ids",
    "subnet_id": "subnet-id",
    "subnet_ipv4_cidr_block": "subnet-ipv4-cidr-block",
    "vpc_id": "vpc-id",
    "vpc_ipv4_cidr_block": "vpc-ipv4-cidr-block",
    "owner_id": "owner-id",
}

MACS_PATH = "network/interfaces/macs/"


def region_from_zone(availability_zone: str) -> str:
    """us-east-1a → us-east-1."""
    return availability_zone[:-1]


class MetadataClient:
    """Reads the instance metadata tree.

    Each read tries the session token first, falls back to an
    unauthenticated GET, and resolves to ``"N/A"`` when both fail. Reads
    never raise.
    """

    def __init__(
        self,
        config: MetadataConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        token_cache: MetadataTokenCache | None = None,
    ) -> None:
        self._config = config or MetadataConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_secs)
        self._tokens = token_cache or MetadataTokenCache(self._client, self._config)

    async def __aenter__(self) -> MetadataClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def token_cache(self) -> MetadataTokenCache:
        return self._tokens

    async def _fetch(self, url: str) -> str:
        token = await self._tokens.get_token()
        try:
            if token:
                response = await self._client.get(url, headers={TOKEN_HEADER: token})
                if response.is_success:
                    return response.text
            response = await self._client.get(url)
            if response.is_success:
                return response.text
            logger.debug("metadata_not_found", url=url, status=response.status_code)
        except httpx.HTTPError as exc:
            logger.debug("metadata_read_failed", url=url, error=str(exc))
        return NOT_AVAILABLE

    async def get_metadata(self, path: str) -> str:
        """GET ``meta-data/<path>``, stripped."""
        return (await self._fetch(f"{self._config.base_url}meta-data/{path}")).strip()

    async def get_dynamic(self, path: str) -> str:
        """GET ``dynamic/<path>``, stripped."""
        return (await self._fetch(f"{self._config.base_url}dynamic/{path}")).strip()

    async def get_user_data(self) -> str:
        return await self._fetch(f"{self._config.base_url}user-data")

    async def _network_interface(self, mac: str) -> NetworkInterfaceMetadata:
        values = await asyncio.gather(*(
            self.get_metadata(f"{MACS_PATH}{mac}/{path}")
            for path in _INTERFACE_PATHS.values()
        ))
        return NetworkInterfaceMetadata(
            mac_address=mac,
            **dict(zip(_INTERFACE_PATHS, values, strict=True)),
        )

    async def network_interfaces(self) -> list[NetworkInterfaceMetadata]:
        listing = await self.get_metadata(MACS_PATH)
        if not listing or listing == NOT_AVAILABLE:
            return []
        macs = [line.strip().rstrip("/") for line in listing.splitlines() if line.strip()]
        return list(await asyncio.gather(*(self._network_interface(m) for m in macs)))

    async def collect_identity(self) -> InstanceMetadata:
        """Collect the flattened identity document of this instance."""
        collected_at = datetime.now(UTC)
        try:
            values, interfaces, document, user_data = await asyncio.gather(
                asyncio.gather(*(self.get_metadata(p) for p in _IDENTITY_PATHS.values())),
                self.network_interfaces(),
                self.get_dynamic("instance-identity/document"),
                self.get_user_data(),
            )
        except Exception as exc:
            logger.exception("metadata_collection_failed")
            return InstanceMetadata(
                collection_time=collected_at,
                error_message=f"Error collecting instance metadata: {exc}",
            )

        fields = dict(zip(_IDENTITY_PATHS, values, strict=True))
        success = fields["instance_id"] != NOT_AVAILABLE
        metadata = InstanceMetadata(
            is_success=success,
            error_message=None if success else "Instance metadata endpoint unreachable",
            collection_time=collected_at,
            network_interfaces=interfaces,
            identity_document=document,
            user_data=user_data,
            **fields,
        )
        logger.info(
            "metadata_collected",
            success=success,
            instance_id=metadata.instance_id,
            region=metadata.region,
            interfaces=len(interfaces),
        )
        return metadata

    async def current_instance_identity(self) -> InstanceIdentity:
        """Return id, zone, region and type of this instance.

        Raises:
            MetadataUnavailableError: instance id or availability zone missing.
        """
        instance_id, zone, instance_type = await asyncio.gather(
            self.get_metadata("instance-id"),
            self.get_metadata("placement/availability-zone"),
            self.get_metadata("instance-type"),
        )
        if not instance_id or instance_id == NOT_AVAILABLE:
            raise MetadataUnavailableError(
                "Failed to retrieve instance ID from metadata service"
            )
        if not zone or zone == NOT_AVAILABLE:
            raise MetadataUnavailableError(
                "Failed to retrieve availability zone from metadata service"
            )
        return InstanceIdentity(
            instance_id=instance_id,
            region=region_from_zone(zone),
            availability_zone=zone,
            instance_type=instance_type or NOT_AVAILABLE,
        )
