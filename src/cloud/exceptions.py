"""Exception hierarchy for cloud metadata and instance enumeration."""

from __future__ import annotations


class CloudError(Exception):
    """Base exception for all cloud integration errors."""


class MetadataUnavailableError(CloudError):
    """Required instance metadata could not be retrieved."""


class TokenRefreshError(CloudError):
    """The metadata endpoint refused or failed to mint a session token."""


class EnumerationError(CloudError):
    """Describe-instances failed for a region."""
