"""Session token cache for the instance metadata endpoint."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import httpx
import structlog

from src.cloud.exceptions import TokenRefreshError
from src.core.config import MetadataConfig
from src.core.types import CachedToken

logger = structlog.stdlib.get_logger()

TOKEN_PATH = "api/token"
TOKEN_HEADER = "X-aws-ec2-metadata-token"
TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"

Minter = Callable[[], Awaitable[str]]


class MetadataTokenCache:
    """Serves a cached bearer token until it nears expiry.

    The usability check and the swap of a fresh token both happen under
    the lock; the network mint does not, so a slow endpoint never holds
    other callers. Concurrent callers that all find the token stale may
    each mint once; every one of them gets a valid token.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: MetadataConfig | None = None,
        *,
        minter: Minter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or MetadataConfig()
        self._client = client
        self._minter = minter or self._mint
        self._clock = clock
        self._token: CachedToken | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> CachedToken | None:
        return self._token

    async def get_token(self) -> str | None:
        """Return a usable token, minting one if needed; None if the mint fails."""
        async with self._lock:
            token = self._token
            if token is not None and token.is_usable(
                self._clock(), self._config.refresh_margin_secs
            ):
                return token.value

        try:
            value = await self._minter()
        except Exception as exc:
            logger.warning("metadata_token_refresh_failed", error=str(exc))
            return None

        fresh = CachedToken(
            value=value,
            expires_at=self._clock() + self._config.token_ttl_secs,
        )
        async with self._lock:
            self._token = fresh
        logger.debug("metadata_token_refreshed", ttl_secs=self._config.token_ttl_secs)
        return value

    def invalidate(self) -> None:
        self._token = None

    async def _mint(self) -> str:
        if self._client is None:
            raise TokenRefreshError("no HTTP client configured")
        response = await self._client.put(
            self._config.base_url + TOKEN_PATH,
            headers={TOKEN_TTL_HEADER: str(self._config.token_ttl_secs)},
        )
        if not response.is_success:
            raise TokenRefreshError(
                f"token endpoint returned HTTP {response.status_code}"
            )
        value = response.text.strip()
        if not value:
            raise TokenRefreshError("token endpoint returned an empty token")
        return value
