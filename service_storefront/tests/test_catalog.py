"""
Unit tests for catalog and order domain operations.
"""

import pytest

from shared.errors import NotFoundError, ValidationError
from shared.test_helpers import TestDataFactory
from service_storefront.app.caching import keys
from service_storefront.app.catalog import CatalogService
from service_storefront.app.catalog.models import ProductCreate, ProductUpdate, slugify
from service_storefront.app.orders.models import OrderCreateRequest, merge_items
from service_storefront.app.orders.service import OrderService
from service_storefront.app.persistence import ORDERS


class TestSlugify:

    @pytest.mark.parametrize("text, expected", [
        ("Rose Candle", "rose-candle"),
        ("  Lavender   & Honey ", "lavender-honey"),
        ("Oud -- Wood", "oud-wood"),
    ])
    def test_slugify(self, text, expected):
        assert slugify(text) == expected


class TestCatalogService:

    @pytest.fixture
    def catalog(self, document_store, read_through, invalidator):
        return CatalogService(document_store, read_through, invalidator)

    @pytest.mark.asyncio
    async def test_update_keeps_slug_unless_name_changes(self, catalog):
        product = await catalog.create_product(ProductCreate(**TestDataFactory.create_product_request()))

        updated = await catalog.update_product(product["_id"], ProductUpdate(price=520.0))
        assert updated["slug"] == "rose-candle"

        updated = await catalog.update_product(product["_id"], ProductUpdate(name="Wild Rose Candle"))
        assert updated["slug"] == "wild-rose-candle"

        updated = await catalog.update_product(product["_id"], ProductUpdate(slug="rose-classic"))
        assert updated["slug"] == "rose-classic"

    @pytest.mark.asyncio
    async def test_discounted_price_can_be_cleared(self, catalog):
        product = await catalog.create_product(ProductCreate(**TestDataFactory.create_product_request()))

        updated = await catalog.update_product(product["_id"], ProductUpdate(discountedPrice=None))

        assert updated["discountedPrice"] is None
        assert updated["price"] == 499.0

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, catalog):
        request = ProductCreate(**TestDataFactory.create_product_request(category_id="nope"))

        with pytest.raises(ValidationError, match="Invalid category_id"):
            await catalog.create_product(request)

    @pytest.mark.asyncio
    async def test_missing_product_is_cached_as_none(self, catalog, fake_redis):
        with pytest.raises(NotFoundError):
            await catalog.get_product("ghost")

        assert fake_redis.data[keys.content_product("ghost")] == "null"

    @pytest.mark.asyncio
    async def test_create_invalidates_negative_entry(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.get_product("rose-candle")

        await catalog.create_product(ProductCreate(**TestDataFactory.create_product_request()))

        assert (await catalog.get_product("rose-candle"))["name"] == "Rose Candle"


class TestOrderService:

    @pytest.fixture
    def orders(self, document_store, read_through, invalidator):
        return OrderService(document_store, read_through, invalidator)

    def test_camel_case_payload(self):
        request = OrderCreateRequest(**TestDataFactory.create_order_request())
        document = request.to_document()

        assert document["customer_email"] == "priya@example.com"
        assert document["total_amount"] == 1497.0
        assert document["status"] == "pending"
        assert document["shiprocket_channel_id"] is None

    def test_merge_items(self):
        items = TestDataFactory.create_order_request()["items"]
        assert merge_items(items) == [{
            "product_id": "prod-1",
            "product_name": "Rose Candle",
            "product_price": 499.0,
            "quantity": 3,
            "subtotal": 1497.0,
        }]

    @pytest.mark.asyncio
    async def test_summary_excludes_cancelled_from_spend(self, orders, document_store):
        first = await orders.create_order(OrderCreateRequest(**TestDataFactory.create_order_request()))
        await orders.create_order(OrderCreateRequest(**TestDataFactory.create_order_request(totalAmount=300.0)))
        await document_store.update(ORDERS, first["_id"], {"status": "cancelled"})

        summary = await orders.customer_summary("priya@example.com")

        assert summary["totalOrders"] == 2
        assert summary["cancelledOrders"] == 1
        assert summary["pendingOrders"] == 1
        assert summary["totalSpent"] == 300.0

    @pytest.mark.asyncio
    async def test_display_id_prefers_channel_id(self, orders, document_store):
        order = await orders.create_order(OrderCreateRequest(**TestDataFactory.create_order_request()))
        assert (await orders.get_order(order["_id"]))["order"]["display_id"] == order["_id"]

        await document_store.update(ORDERS, order["_id"], {"shiprocket_channel_id": "CH77"})
        assert (await orders.get_order(order["_id"]))["order"]["display_id"] == "CH77"
