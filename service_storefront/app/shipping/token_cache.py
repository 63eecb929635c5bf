"""
Shiprocket bearer-token cache.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from shared.logging import get_logger


TOKEN_TTL_SECONDS = 9 * 24 * 60 * 60
REFRESH_MARGIN_SECONDS = 5.0

Login = Callable[[], Awaitable[str]]


class ShiprocketTokenCache:
    """Holds one bearer token and refreshes it on demand.

    Refresh is single-flight: concurrent callers that find the token missing
    or about to expire wait on the same lock, and only the first performs the
    login.
    """

    def __init__(
        self,
        ttl_seconds: float = TOKEN_TTL_SECONDS,
        margin_seconds: float = REFRESH_MARGIN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.margin_seconds = margin_seconds
        self.clock = clock
        self.logger = get_logger("storefront.shipping.token_cache")

        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _valid(self) -> bool:
        return self._token is not None and self._expires_at > self.clock() + self.margin_seconds

    async def get_token(self, login: Login) -> str:
        if self._valid():
            return self._token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if self._valid():
                return self._token

            token = await login()
            self._token = token
            self._expires_at = self.clock() + self.ttl_seconds
            self.logger.info("Shiprocket token refreshed", ttl=self.ttl_seconds)
            return token

    def invalidate(self):
        self._token = None
        self._expires_at = 0.0
