"""EC2 describe-instances enumeration via boto3."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from src.cloud.exceptions import EnumerationError
from src.core.config import AwsConfig
from src.core.types import InstanceRecord

logger = structlog.stdlib.get_logger()

TERMINATED = "terminated"


class InstanceEnumerator(Protocol):
    """Anything that can list the non-terminated instances of a region."""

    async def enumerate(self, region: str) -> list[InstanceRecord]: ...


def instance_name(instance: dict[str, Any]) -> str:
    """Value of the ``Name`` tag (key matched case-insensitively), else empty."""
    for tag in instance.get("Tags") or []:
        if str(tag.get("Key", "")).lower() == "name":
            return str(tag.get("Value") or "")
    return ""


def to_record(instance: dict[str, Any], region: str) -> InstanceRecord:
    return InstanceRecord(
        id=instance.get("InstanceId") or "",
        name=instance_name(instance),
        private_ip=instance.get("PrivateIpAddress") or "",
        public_ip=instance.get("PublicIpAddress") or "",
        region=region,
    )


class Ec2InstanceEnumerator:
    """Lists instances per region, one boto3 client per region.

    With no static keys configured the default boto3 credential chain is
    used (environment, profile, instance role).
    """

    def __init__(
        self,
        config: AwsConfig | None = None,
        session: boto3.session.Session | None = None,
    ) -> None:
        self._config = config or AwsConfig()
        self._session = session or self._build_session()
        self._clients: dict[str, Any] = {}

    def _build_session(self) -> boto3.session.Session:
        secret = self._config.secret_access_key.get_secret_value()
        if self._config.access_key_id and secret:
            return boto3.session.Session(
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=secret,
            )
        return boto3.session.Session()

    def _client(self, region: str) -> Any:
        client = self._clients.get(region)
        if client is None:
            client = self._session.client("ec2", region_name=region)
            self._clients[region] = client
        return client

    @staticmethod
    def _describe_all(client: Any, region: str) -> list[InstanceRecord]:
        records: list[InstanceRecord] = []
        pages = 0
        for page in client.get_paginator("describe_instances").paginate():
            pages += 1
            for reservation in page.get("Reservations") or []:
                for instance in reservation.get("Instances") or []:
                    if (instance.get("State") or {}).get("Name") == TERMINATED:
                        continue
                    records.append(to_record(instance, region))
        logger.debug("describe_instances_done", region=region, pages=pages)
        return records

    async def enumerate(self, region: str) -> list[InstanceRecord]:
        """Return every non-terminated instance of *region*, in API order.

        Raises:
            EnumerationError: the API call failed.
        """
        client = self._client(region)
        try:
            return await asyncio.to_thread(self._describe_all, client, region)
        except (BotoCoreError, ClientError) as exc:
            raise EnumerationError(
                f"Error enumerating instances in region {region}: {exc}"
            ) from exc
