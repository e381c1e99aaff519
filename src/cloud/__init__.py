"""Cloud instance metadata and fleet directory."""

from src.cloud.directory import InstanceDirectory
from src.cloud.enumerator import Ec2InstanceEnumerator, InstanceEnumerator
from src.cloud.exceptions import (
    CloudError,
    EnumerationError,
    MetadataUnavailableError,
    TokenRefreshError,
)
from src.cloud.metadata import MetadataClient
from src.cloud.token_cache import MetadataTokenCache

__all__ = [
    "CloudError",
    "Ec2InstanceEnumerator",
    "EnumerationError",
    "InstanceDirectory",
    "InstanceEnumerator",
    "MetadataClient",
    "MetadataTokenCache",
    "MetadataUnavailableError",
    "TokenRefreshError",
]
