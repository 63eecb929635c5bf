"""
Integration tests for the checkout-to-delivery flow.

Runs the real Shiprocket client against an in-process Shiprocket stand-in
(httpx MockTransport) with the in-memory document store and a fake Redis.
"""

import json

import httpx
import pytest

from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from shared.test_helpers import FakeRedis, TestDataFactory
from service_storefront.app.caching import CacheInvalidator, ReadThroughCache, RedisCacheStore, keys
from service_storefront.app.orders.models import OrderCreateRequest
from service_storefront.app.orders.service import OrderService
from service_storefront.app.persistence import InMemoryDocumentStore
from service_storefront.app.shipping import ShipmentDispatcher, ShipmentReconciler, ShiprocketClient


class ShiprocketStandIn:
    """Just enough of the Shiprocket API to create and track orders."""

    def __init__(self):
        self.logins = 0
        self.orders = {}
        self.events = {}

    def advance(self, channel_id, status):
        self.events.setdefault(channel_id, []).append({"current_status": status})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1/external")

        if path == "/auth/login":
            self.logins += 1
            return httpx.Response(200, json={"token": f"token-{self.logins}"})

        if request.headers.get("Authorization") != f"Bearer token-{self.logins}":
            return httpx.Response(401, json={"message": "Unauthorized"})

        if path == "/orders/create/adhoc":
            payload = json.loads(request.content)
            shiprocket_id = 5000 + len(self.orders)
            channel_id = f"SF-{payload['order_id'][:8]}"
            self.orders[channel_id] = payload
            return httpx.Response(200, json={"order_id": shiprocket_id, "channel_order_id": channel_id})

        if path == "/courier/track":
            channel_id = request.url.params["order_id"]
            return httpx.Response(200, json=[{
                channel_id: {"tracking_data": {"shipment_track": self.events.get(channel_id, [])}}
            }])

        return httpx.Response(404, json={"message": "Not found"})


class TestStorefrontFlow:
    """Order placed, pushed to Shiprocket, then kept in sync with the courier."""

    @pytest.fixture
    def shiprocket(self):
        return ShiprocketStandIn()

    @pytest.fixture
    def fake_redis(self):
        return FakeRedis()

    @pytest.fixture
    def components(self, shiprocket, fake_redis):
        metrics = MetricsCollector("storefront")
        store = InMemoryDocumentStore()
        cache_store = RedisCacheStore("redis://unused:6379/0", client=fake_redis)
        cache = ReadThroughCache(cache_store, metrics=metrics)
        invalidator = CacheInvalidator(cache_store, metrics=metrics)

        client = ShiprocketClient(
            email="ops@example.com",
            password="secret",
            api_base="https://apiv2.shiprocket.test/v1/external",
            transport=httpx.MockTransport(shiprocket),
            retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
        )
        reconciler = ShipmentReconciler(store, client, invalidator=invalidator, metrics=metrics)
        dispatcher = ShipmentDispatcher(
            store,
            client,
            invalidator=invalidator,
            reconciler=reconciler,
            metrics=metrics,
            retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
        )
        orders = OrderService(store, cache, invalidator, dispatcher=dispatcher)
        return {
            "orders": orders,
            "dispatcher": dispatcher,
            "reconciler": reconciler,
            "metrics": metrics,
        }

    @pytest.mark.asyncio
    async def test_checkout_dispatch_and_reconcile(self, components, shiprocket, fake_redis):
        orders = components["orders"]
        dispatcher = components["dispatcher"]
        reconciler = components["reconciler"]

        order = await orders.create_order(OrderCreateRequest(**TestDataFactory.create_order_request()))
        assert dispatcher.queue.get_nowait() == order["_id"]

        assert await dispatcher.dispatch(order["_id"]) is True
        [(channel_id, payload)] = shiprocket.orders.items()
        assert payload["order_items"][0]["units"] == 3

        view = await orders.get_order(order["_id"])
        assert view["order"]["display_id"] == channel_id
        assert view["order"]["status"] == "pending"

        # Admin list is cached until the courier reports progress.
        assert (await orders.list_admin_orders())[0]["status"] == "pending"
        assert keys.ADMIN_ORDERS in fake_redis.data

        shiprocket.advance(channel_id, "Pickup Scheduled")
        shiprocket.advance(channel_id, "Shipped - In Transit")
        summary = await reconciler.run()

        assert summary.updated == 1
        assert keys.ADMIN_ORDERS not in fake_redis.data
        assert (await orders.list_admin_orders())[0]["status"] == "shipped"

        # Nothing new from the courier: the next pass changes nothing.
        summary = await reconciler.run()
        assert summary.unchanged == 1

        shiprocket.advance(channel_id, "Delivered")
        await reconciler.run()
        summary = await orders.customer_summary("priya@example.com")
        assert summary["deliveredOrders"] == 1
        assert summary["totalSpent"] == 1497.0

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_mid_run(self, components, shiprocket):
        orders = components["orders"]
        dispatcher = components["dispatcher"]
        reconciler = components["reconciler"]

        order = await orders.create_order(OrderCreateRequest(**TestDataFactory.create_order_request()))
        await dispatcher.dispatch(order["_id"])
        [channel_id] = shiprocket.orders
        shiprocket.advance(channel_id, "Out for Delivery")

        # Shiprocket rotates the token; the cached one is now rejected.
        shiprocket.logins += 1
        summary = await reconciler.run()

        assert summary.updated == 1
        assert shiprocket.logins == 3
        assert (await orders.get_order(order["_id"]))["order"]["status"] == "out_for_delivery"

    @pytest.mark.asyncio
    async def test_unreachable_shiprocket_dead_letters_order(self, components, shiprocket):
        orders = components["orders"]
        dispatcher = components["dispatcher"]
        metrics = components["metrics"]

        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        dispatcher.client.transport = httpx.MockTransport(unreachable)

        order = await orders.create_order(OrderCreateRequest(**TestDataFactory.create_order_request()))
        assert await dispatcher.dispatch(order["_id"]) is False

        [entry] = dispatcher.list_dead_letters()
        assert entry["order_id"] == order["_id"]
        assert metrics.registry.get_sample_value("shipment_dead_letters") == 1.0

        dispatcher.client.transport = httpx.MockTransport(shiprocket)
        assert dispatcher.requeue(order["_id"]) is True
        queued = [dispatcher.queue.get_nowait() for _ in range(dispatcher.queue.qsize())]
        assert queued[-1] == order["_id"]
        assert await dispatcher.dispatch(order["_id"]) is True
