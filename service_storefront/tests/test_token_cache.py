"""
Unit tests for the Shiprocket token cache.
"""

import asyncio

import pytest

from service_storefront.app.shipping.token_cache import ShiprocketTokenCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingLogin:
    def __init__(self, delay: float = 0.0):
        self.calls = 0
        self.delay = delay

    async def __call__(self) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return f"token-{self.calls}"


class TestShiprocketTokenCache:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_login(self):
        cache = ShiprocketTokenCache()
        login = CountingLogin(delay=0.01)

        tokens = await asyncio.gather(*(cache.get_token(login) for _ in range(5)))

        assert tokens == ["token-1"] * 5
        assert login.calls == 1

    @pytest.mark.asyncio
    async def test_token_reused_until_margin(self):
        clock = FakeClock()
        cache = ShiprocketTokenCache(ttl_seconds=100, margin_seconds=5, clock=clock)
        login = CountingLogin()

        assert await cache.get_token(login) == "token-1"
        clock.now += 94
        assert await cache.get_token(login) == "token-1"
        clock.now += 1.5
        assert await cache.get_token(login) == "token-2"
        assert login.calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_login(self):
        cache = ShiprocketTokenCache()
        login = CountingLogin()

        await cache.get_token(login)
        cache.invalidate()

        assert await cache.get_token(login) == "token-2"

    @pytest.mark.asyncio
    async def test_failed_login_is_not_cached(self):
        cache = ShiprocketTokenCache()
        attempts = []

        async def failing_login():
            attempts.append(1)
            raise RuntimeError("bad credentials")

        with pytest.raises(RuntimeError):
            await cache.get_token(failing_login)
        with pytest.raises(RuntimeError):
            await cache.get_token(failing_login)

        assert len(attempts) == 2
