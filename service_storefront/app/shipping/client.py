"""
Shiprocket API client.
"""

from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import ExternalServiceError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception
from .token_cache import ShiprocketTokenCache


SERVICE_NAME = "shiprocket"
DEFAULT_API_BASE = "https://apiv2.shiprocket.in/v1/external"


class ShipmentAuthenticationError(ExternalServiceError):
    """Shiprocket rejected the configured credentials."""

    def __init__(self, message: str = "Shiprocket authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(SERVICE_NAME, message, details, code="SHIPMENT_AUTHENTICATION_ERROR")


class ShipmentRequestError(ExternalServiceError):
    """Shiprocket answered an authorized call with a non-2xx status."""

    def __init__(self, message: str, remote_status: int, details: Optional[Dict[str, Any]] = None):
        self.remote_status = remote_status
        super().__init__(
            SERVICE_NAME,
            message,
            {"remote_status": remote_status, **(details or {})},
            code="SHIPMENT_REQUEST_ERROR",
        )


class ShiprocketClient:
    """Client for the Shiprocket external API."""

    def __init__(
        self,
        email: Optional[str],
        password: Optional[str],
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        token_cache: Optional[ShiprocketTokenCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.email = email
        self.password = password
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.token_cache = token_cache or ShiprocketTokenCache()
        self.transport = transport
        self.logger = get_logger("storefront.shipping.client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            failure_exceptions=(httpx.TransportError,),
            name="shiprocket",
        )

        retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0, max_delay=10.0)
        self._send_with_retry = retry_on_exception((httpx.TransportError,), config=retry_config)(self._send_once)

    async def _send_once(self, method: str, path: str, **kwargs) -> httpx.Response:
        async def _send():
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.request(method, f"{self.api_base}{path}", **kwargs)

        return await self.circuit_breaker.call(_send)

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._send_with_retry(method, path, **kwargs)
        except RetryError as e:
            self.logger.error("Shiprocket unreachable", method=method, path=path, error=str(e.last_exception))
            raise ExternalServiceError(
                SERVICE_NAME,
                "Shiprocket unreachable",
                details={"error": str(e.last_exception), "attempts": e.attempts},
            )
        except CircuitBreakerOpenException as e:
            self.logger.warning("Shiprocket circuit open", method=method, path=path)
            raise ExternalServiceError(SERVICE_NAME, "Shiprocket temporarily unavailable", details={"error": str(e)})

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _remote_message(body: Any, default: str) -> str:
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return default

    async def login(self) -> str:
        """Exchange the configured credentials for a bearer token."""
        if not self.email or not self.password:
            raise ShipmentAuthenticationError("Shiprocket credentials are not configured")

        response = await self._send("POST", "/auth/login", json={"email": self.email, "password": self.password})
        body = self._body(response)

        if not response.is_success:
            message = self._remote_message(body, "Login failed")
            self.logger.error("Shiprocket login failed", status_code=response.status_code, error=message)
            raise ShipmentAuthenticationError(message, details={"remote_status": response.status_code})

        token = None
        if isinstance(body, dict):
            token = body.get("token") or (body.get("data") or {}).get("token")
        if not token:
            raise ShipmentAuthenticationError("No token returned from Shiprocket")

        self.logger.info("Shiprocket login successful")
        return token

    async def _authorized_request(self, method: str, path: str, **kwargs) -> Any:
        token = await self.token_cache.get_token(self.login)
        response = await self._send(method, path, headers={"Authorization": f"Bearer {token}"}, **kwargs)

        if response.status_code == 401:
            self.logger.warning("Shiprocket token rejected, logging in again", path=path)
            self.token_cache.invalidate()
            token = await self.token_cache.get_token(self.login)
            response = await self._send(method, path, headers={"Authorization": f"Bearer {token}"}, **kwargs)

        body = self._body(response)
        if not response.is_success:
            message = self._remote_message(body, "Shiprocket API error")
            self.logger.error(
                "Shiprocket request failed",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise ShipmentRequestError(message, response.status_code)

        return body

    async def create_adhoc_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._authorized_request("POST", "/orders/create/adhoc", json=payload)

    async def get_rates(self, rate_request: Dict[str, Any]) -> Dict[str, Any]:
        return await self._authorized_request("POST", "/courier/serviceability/", json=rate_request)

    async def print_label(self, order_id: str) -> Dict[str, Any]:
        return await self._authorized_request("GET", f"/orders/print/{order_id}")

    async def track_by_awb(self, awb: str) -> Any:
        return await self._authorized_request("GET", f"/courier/track/awb/{awb}")

    async def track_by_order_id(self, channel_order_id: str) -> Any:
        """Track by channel order id; the response is a list of ``{<id>: {...}}`` objects."""
        return await self._authorized_request("GET", "/courier/track", params={"order_id": channel_order_id})
