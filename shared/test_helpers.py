"""
Test helper functions and factory methods for the Storefront backend.
"""

import fnmatch
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt

from shared.errors import ExternalServiceError


@dataclass
class TestUser:
    """Test user data."""
    user_id: str
    email: str
    name: str = "Test User"


class TestDataFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_test_users() -> List[TestUser]:
        """Create test users."""
        return [
            TestUser(user_id="user1", email="priya@example.com", name="Priya Sharma"),
            TestUser(user_id="user2", email="arjun@example.com", name="Arjun Mehta"),
            TestUser(user_id="admin", email="admin@example.com", name="Store Admin"),
        ]

    @staticmethod
    def create_order_request(**overrides) -> Dict[str, Any]:
        """Checkout payload as the storefront sends it."""
        payload = {
            "customerName": "Priya",
            "customerLastName": "Sharma",
            "customerEmail": "priya@example.com",
            "customerPhone": "9876543210",
            "shippingAddress": "12 MG Road",
            "city": "Bengaluru",
            "postalCode": "560001",
            "country": "India",
            "totalAmount": 1497.0,
            "items": [
                {
                    "product_id": "prod-1",
                    "product_name": "Rose Candle",
                    "product_price": 499.0,
                    "quantity": 2,
                    "subtotal": 998.0,
                },
                {
                    "product_id": "prod-1",
                    "product_name": "Rose Candle",
                    "product_price": 499.0,
                    "quantity": 1,
                    "subtotal": 499.0,
                },
            ],
        }
        payload.update(overrides)
        return payload

    @staticmethod
    def create_product_request(**overrides) -> Dict[str, Any]:
        payload = {
            "name": "Rose Candle",
            "description": "Hand-poured soy candle",
            "price": 499.0,
            "discountedPrice": 449.0,
            "images": ["https://cdn.example.com/rose.jpg"],
            "in_stock": True,
            "featured": True,
        }
        payload.update(overrides)
        return payload

    @staticmethod
    def create_tracking_response(channel_id: str, *statuses: str) -> List[Dict[str, Any]]:
        """Shiprocket track-by-order-id response with one event per status."""
        return [{
            channel_id: {
                "tracking_data": {
                    "track_status": 1,
                    "shipment_track": [
                        {"id": index, "current_status": status}
                        for index, status in enumerate(statuses)
                    ],
                }
            }
        }]


class MockTokenGenerator:
    """Generate HS256 bearer tokens for testing."""

    def __init__(self, secret: str = "test-secret"):
        self.secret = secret

    def generate_access_token(self, user: TestUser, expires_in: int = 3600) -> str:
        """Generate access token for user."""
        now = datetime.now(timezone.utc)
        payload = {
            "id": user.user_id,
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm="HS256")

    def auth_headers(self, user: TestUser) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.generate_access_token(user)}"}


class FakeRedis:
    """In-memory stand-in for a ``redis.asyncio`` client with string values."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, float] = {}
        self.fail = False
        self.closed = False

    def _check(self):
        if self.fail:
            raise ConnectionError("redis unavailable")

    def _purge(self):
        now = time.monotonic()
        for key in [k for k, expires in self.expiry.items() if expires <= now]:
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        self._purge()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._check()
        self.data[key] = value
        if ex:
            self.expiry[key] = time.monotonic() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        return await self.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> int:
        self._check()
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.expiry.pop(key, None)
                deleted += 1
        return deleted

    async def keys(self, pattern: str) -> List[str]:
        self._check()
        self._purge()
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]

    async def aclose(self):
        self.closed = True


class FakeShipmentClient:
    """Records Shiprocket calls and serves canned tracking responses."""

    def __init__(self):
        self.tracking: Dict[str, Any] = {}
        self.created: List[Dict[str, Any]] = []
        self.tracked: List[str] = []
        self.fail_creates = 0
        self.next_order_id = 1000

    async def create_adhoc_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_creates:
            self.fail_creates -= 1
            raise ExternalServiceError("shiprocket", "Shiprocket unreachable")
        self.created.append(payload)
        self.next_order_id += 1
        return {
            "order_id": self.next_order_id,
            "channel_order_id": f"CH{self.next_order_id}",
            "status": "NEW",
        }

    async def track_by_order_id(self, channel_order_id: str) -> Any:
        self.tracked.append(channel_order_id)
        response = self.tracking.get(channel_order_id, [])
        if isinstance(response, Exception):
            raise response
        return response

    async def get_rates(self, rate_request: Dict[str, Any]) -> Dict[str, Any]:
        return {"status": 200, "data": {"available_courier_companies": [{"courier_name": "Delhivery", "rate": 75.0}]}}

    async def print_label(self, order_id: str) -> Dict[str, Any]:
        return {"label_created": 1, "label_url": f"https://labels.example.com/{order_id}.pdf"}

    async def track_by_awb(self, awb: str) -> Dict[str, Any]:
        return {"tracking_data": {"awb_code": awb, "shipment_status": 6}}

