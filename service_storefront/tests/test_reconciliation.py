"""
Unit tests for shipment status reconciliation.
"""

from unittest.mock import AsyncMock, patch

import pytest

from shared.errors import ExternalServiceError
from shared.test_helpers import TestDataFactory
from service_storefront.app.caching import keys
from service_storefront.app.persistence import ORDERS
from service_storefront.app.shipping.reconciliation import ShipmentReconciler, extract_latest_status


tracking = TestDataFactory.create_tracking_response


async def _order(store, status="pending", channel_id="CH1", **fields):
    return await store.insert(ORDERS, {
        "customer_email": "priya@example.com",
        "status": status,
        "shiprocket_order_id": "SR1" if channel_id else None,
        "shiprocket_channel_id": channel_id,
        **fields,
    })


class TestExtractLatestStatus:

    def test_last_event_wins(self):
        response = tracking("CH1", "Pickup Scheduled", "In Transit", "Out for Delivery")
        assert extract_latest_status(response, "CH1") == "Out for Delivery"

    @pytest.mark.parametrize("response", [
        None,
        [],
        {},
        [None],
        [{"OTHER": {}}],
        [{"CH1": {}}],
        [{"CH1": {"tracking_data": None}}],
        [{"CH1": {"tracking_data": {"shipment_track": []}}}],
        [{"CH1": {"tracking_data": {"error": "Awb not assigned"}}}],
    ])
    def test_missing_steps_yield_none(self, response):
        assert extract_latest_status(response, "CH1") is None

    def test_numeric_channel_id(self):
        assert extract_latest_status(tracking("12345", "Delivered"), 12345) == "Delivered"


class TestShipmentReconciler:

    @pytest.fixture
    def reconciler(self, document_store, shipment_client, invalidator, metrics):
        return ShipmentReconciler(document_store, shipment_client, invalidator=invalidator, metrics=metrics)

    @pytest.mark.asyncio
    async def test_updates_only_on_change(self, reconciler, document_store, shipment_client):
        moving = await _order(document_store, "pending", "CH1")
        settled = await _order(document_store, "shipped", "CH2")
        shipment_client.tracking["CH1"] = tracking("CH1", "Pickup Scheduled", "Shipped - In Transit")
        shipment_client.tracking["CH2"] = tracking("CH2", "In Transit")

        summary = await reconciler.run()

        assert (await document_store.get(ORDERS, moving["_id"]))["status"] == "shipped"
        unchanged = await document_store.get(ORDERS, settled["_id"])
        assert unchanged["updated_at"] == settled["updated_at"]
        assert summary.to_dict() == {"checked": 2, "updated": 1, "unchanged": 1, "skipped": 0, "failed": 0}

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, reconciler, document_store, shipment_client):
        order = await _order(document_store, "pending", "CH1")
        shipment_client.tracking["CH1"] = tracking("CH1", "Delivered")

        await reconciler.run()
        with patch.object(document_store, "update", new_callable=AsyncMock) as mock_update:
            summary = await reconciler.run()

        mock_update.assert_not_called()
        assert summary.unchanged == 1
        assert (await document_store.get(ORDERS, order["_id"]))["status"] == "delivered"

    @pytest.mark.asyncio
    async def test_orders_without_channel_id_are_ignored(self, reconciler, document_store, shipment_client):
        await _order(document_store, "pending", None)

        summary = await reconciler.run()

        assert shipment_client.tracked == []
        assert summary.checked == 0

    @pytest.mark.asyncio
    async def test_unrecognized_status_leaves_order_alone(self, reconciler, document_store, shipment_client):
        order = await _order(document_store, "processing", "CH1")
        shipment_client.tracking["CH1"] = tracking("CH1", "RTO Initiated")

        summary = await reconciler.run()

        assert (await document_store.get(ORDERS, order["_id"]))["status"] == "processing"
        assert summary.unchanged == 1

    @pytest.mark.asyncio
    async def test_backward_status_is_ignored(self, reconciler, document_store, shipment_client):
        order = await _order(document_store, "delivered", "CH1")
        shipment_client.tracking["CH1"] = tracking("CH1", "In Transit")

        summary = await reconciler.run()

        assert (await document_store.get(ORDERS, order["_id"]))["status"] == "delivered"
        assert summary.updated == 0

    @pytest.mark.asyncio
    async def test_per_order_failures_are_isolated(self, reconciler, document_store, shipment_client, metrics):
        first = await _order(document_store, "pending", "CH1")
        broken = await _order(document_store, "pending", "CH2")
        last = await _order(document_store, "pending", "CH3")
        shipment_client.tracking["CH1"] = tracking("CH1", "Delivered")
        shipment_client.tracking["CH2"] = ExternalServiceError("shiprocket", "Shiprocket unreachable")
        shipment_client.tracking["CH3"] = tracking("CH3", "Out for Delivery")

        summary = await reconciler.run()

        assert (await document_store.get(ORDERS, first["_id"]))["status"] == "delivered"
        assert (await document_store.get(ORDERS, broken["_id"]))["status"] == "pending"
        assert (await document_store.get(ORDERS, last["_id"]))["status"] == "out_for_delivery"
        assert summary.failed == 1
        assert summary.updated == 2
        assert metrics.registry.get_sample_value("reconciliation_orders_total", {"outcome": "failed"}) == 1.0

    @pytest.mark.asyncio
    async def test_query_failure_never_raises(self, reconciler, document_store, metrics):
        with patch.object(document_store, "find", new_callable=AsyncMock) as mock_find:
            mock_find.side_effect = ConnectionError("database down")
            summary = await reconciler.run()

        assert summary.checked == 0
        assert metrics.registry.get_sample_value("reconciliation_runs_total", {"result": "error"}) == 1.0

    @pytest.mark.asyncio
    async def test_status_change_invalidates_order_caches(self, reconciler, document_store, shipment_client, fake_redis):
        order = await _order(document_store, "pending", "CH1")
        shipment_client.tracking["CH1"] = tracking("CH1", "Shipped")
        fake_redis.data[keys.ADMIN_ORDERS] = "[]"
        fake_redis.data[keys.admin_order(order["_id"])] = "{}"
        fake_redis.data[keys.reviews("latest")] = "[]"

        await reconciler.run()

        assert set(fake_redis.data) == {keys.reviews("latest")}

    @pytest.mark.asyncio
    async def test_skip_terminal(self, document_store, shipment_client):
        await _order(document_store, "delivered", "CH1")
        await _order(document_store, "cancelled", "CH2")
        await _order(document_store, "shipped", "CH3")
        shipment_client.tracking["CH3"] = tracking("CH3", "Delivered")
        reconciler = ShipmentReconciler(document_store, shipment_client, skip_terminal=True)

        summary = await reconciler.run()

        assert shipment_client.tracked == ["CH3"]
        assert summary.skipped == 2
        assert summary.updated == 1

    @pytest.mark.asyncio
    async def test_order_deleted_mid_run_is_not_counted_as_updated(
        self, reconciler, document_store, shipment_client, fake_redis
    ):
        order = await _order(document_store, "pending", "CH1")
        fake_redis.data[keys.ADMIN_ORDERS] = "[]"

        async def track_then_delete(channel_id):
            await document_store.delete(ORDERS, order["_id"])
            return tracking("CH1", "Shipped")

        with patch.object(shipment_client, "track_by_order_id", new=AsyncMock(side_effect=track_then_delete)):
            summary = await reconciler.run()

        assert summary.updated == 0
        assert summary.unchanged == 1
        assert await document_store.get(ORDERS, order["_id"]) is None
        assert keys.ADMIN_ORDERS in fake_redis.data

    @pytest.mark.asyncio
    async def test_run_records_metrics(self, reconciler, metrics):
        await reconciler.run()

        assert metrics.registry.get_sample_value("reconciliation_runs_total", {"result": "success"}) == 1.0
        assert metrics.registry.get_sample_value("reconciliation_duration_seconds_count") == 1.0
