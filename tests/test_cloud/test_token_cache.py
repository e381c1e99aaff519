"""Tests for MetadataTokenCache — caching, expiry, concurrent refresh, minting."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from src.cloud.exceptions import TokenRefreshError
from src.cloud.token_cache import TOKEN_TTL_HEADER, MetadataTokenCache
from src.core.config import MetadataConfig

CONFIG = MetadataConfig(
    base_url="http://imds.test/latest/",
    token_ttl_secs=100,
    refresh_margin_secs=10.0,
)


class CountingMinter:
    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self._fail = fail

    async def __call__(self) -> str:
        self.calls += 1
        n = self.calls
        await asyncio.sleep(0)
        if self._fail:
            raise TokenRefreshError("endpoint refused")
        return f"tok-{n}"


# ── Caching ─────────────────────────────────────────────────────


class TestCaching:
    async def test_second_call_hits_cache(self) -> None:
        minter = CountingMinter()
        cache = MetadataTokenCache(config=CONFIG, minter=minter, clock=lambda: 1000.0)

        assert await cache.get_token() == "tok-1"
        assert await cache.get_token() == "tok-1"
        assert minter.calls == 1
        assert cache.cached is not None
        assert cache.cached.expires_at == 1100.0

    async def test_refreshes_inside_safety_margin(self) -> None:
        now = [1000.0]
        minter = CountingMinter()
        cache = MetadataTokenCache(config=CONFIG, minter=minter, clock=lambda: now[0])

        await cache.get_token()
        now[0] = 1089.0
        assert await cache.get_token() == "tok-1"
        now[0] = 1090.0
        assert await cache.get_token() == "tok-2"
        assert minter.calls == 2

    async def test_invalidate_forces_mint(self) -> None:
        minter = CountingMinter()
        cache = MetadataTokenCache(config=CONFIG, minter=minter, clock=lambda: 0.0)

        await cache.get_token()
        cache.invalidate()
        assert cache.cached is None
        assert await cache.get_token() == "tok-2"


# ── Failure ─────────────────────────────────────────────────────


class TestFailure:
    async def test_failed_mint_returns_none(self) -> None:
        minter = CountingMinter(fail=True)
        cache = MetadataTokenCache(config=CONFIG, minter=minter)

        assert await cache.get_token() is None
        assert cache.cached is None

    async def test_failure_not_cached(self) -> None:
        minter = CountingMinter(fail=True)
        cache = MetadataTokenCache(config=CONFIG, minter=minter)

        await cache.get_token()
        await cache.get_token()
        assert minter.calls == 2


# ── Concurrency ─────────────────────────────────────────────────


class TestConcurrency:
    async def test_concurrent_callers_all_get_a_minted_token(self) -> None:
        minter = CountingMinter()
        cache = MetadataTokenCache(config=CONFIG, minter=minter, clock=lambda: 0.0)

        tokens = await asyncio.gather(*(cache.get_token() for _ in range(100)))

        assert 1 <= minter.calls <= 100
        minted = {f"tok-{n}" for n in range(1, minter.calls + 1)}
        assert all(t in minted for t in tokens)
        assert cache.cached is not None
        assert cache.cached.value in minted

    async def test_warm_cache_never_mints_under_load(self) -> None:
        minter = CountingMinter()
        cache = MetadataTokenCache(config=CONFIG, minter=minter, clock=lambda: 0.0)
        await cache.get_token()

        tokens = await asyncio.gather(*(cache.get_token() for _ in range(50)))

        assert set(tokens) == {"tok-1"}
        assert minter.calls == 1


# ── Minting over HTTP ───────────────────────────────────────────


class TestMint:
    async def test_put_with_ttl_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="  AQAEAtoken==\n")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            cache = MetadataTokenCache(client, CONFIG)
            assert await cache.get_token() == "AQAEAtoken=="

        assert seen[0].method == "PUT"
        assert str(seen[0].url) == "http://imds.test/latest/api/token"
        assert seen[0].headers[TOKEN_TTL_HEADER] == "100"

    async def test_refused_mint(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(403))
        async with httpx.AsyncClient(transport=transport) as client:
            cache = MetadataTokenCache(client, CONFIG)
            with pytest.raises(TokenRefreshError, match="HTTP 403"):
                await cache._mint()
            assert await cache.get_token() is None

    async def test_empty_token_rejected(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=" "))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(TokenRefreshError, match="empty"):
                await MetadataTokenCache(client, CONFIG)._mint()

    async def test_no_client(self) -> None:
        with pytest.raises(TokenRefreshError):
            await MetadataTokenCache(config=CONFIG)._mint()
