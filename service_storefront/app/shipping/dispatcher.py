"""
Background shipment dispatch.

Newly created orders are queued here after the checkout response has been
sent. A single worker pushes each order to Shiprocket with retry; rejected
credentials and 4xx responses are not retried. Orders that still fail land in
a bounded dead-letter queue that admins can inspect and requeue.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception
from shared.errors import ExternalServiceError
from ..caching import CacheInvalidator, EntityGroup
from ..persistence import DocumentStore, ORDERS, ORDER_ITEMS
from ..persistence.base import utc_now
from .client import ShipmentAuthenticationError, ShipmentRequestError, ShiprocketClient

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .reconciliation import ShipmentReconciler


class PackageDefaults:
    """Parcel settings sent with every adhoc order."""

    def __init__(
        self,
        pickup_location: str = "Primary",
        length: float = 10,
        breadth: float = 10,
        height: float = 10,
        weight: float = 0.5,
    ):
        self.pickup_location = pickup_location
        self.length = length
        self.breadth = breadth
        self.height = height
        self.weight = weight


def merge_order_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Shiprocket line items, one per product (duplicate SKUs are summed)."""
    merged: Dict[str, Dict[str, Any]] = {}
    for item in items:
        sku = str(item["product_id"])
        if sku in merged:
            merged[sku]["units"] += item["quantity"]
        else:
            merged[sku] = {
                "name": item["product_name"],
                "sku": sku,
                "units": item["quantity"],
                "selling_price": item["product_price"],
            }
    return list(merged.values())


def build_adhoc_order_payload(
    order: Dict[str, Any],
    items: List[Dict[str, Any]],
    package: PackageDefaults,
) -> Dict[str, Any]:
    created_at = order.get("created_at") or utc_now()
    return {
        "order_id": order["_id"],
        "order_date": created_at[:10],
        "pickup_location": package.pickup_location,
        "billing_customer_name": order.get("customer_name"),
        "billing_last_name": order.get("customer_last_name") or "",
        "billing_address": order.get("shipping_address"),
        "billing_city": order.get("city"),
        "billing_pincode": order.get("postal_code"),
        "billing_state": order.get("city"),
        "billing_country": order.get("country"),
        "billing_email": order.get("customer_email"),
        "billing_phone": order.get("customer_phone"),
        "shipping_is_billing": True,
        "order_items": merge_order_items(items),
        "payment_method": "Prepaid",
        "sub_total": order.get("total_amount"),
        "length": package.length,
        "breadth": package.breadth,
        "height": package.height,
        "weight": package.weight,
    }


def is_permanent_failure(error: Exception) -> bool:
    """Failures that another attempt cannot fix: bad credentials or a 4xx rejection."""
    if isinstance(error, ShipmentAuthenticationError):
        return True
    return isinstance(error, ShipmentRequestError) and error.remote_status < 500


class PermanentDispatchError(Exception):
    """Wraps a Shiprocket failure that must not be retried."""

    def __init__(self, error: ExternalServiceError):
        super().__init__(str(error))
        self.error = error


class ShipmentDispatcher:
    """Queue-backed worker that pushes orders to Shiprocket."""

    def __init__(
        self,
        store: DocumentStore,
        client: ShiprocketClient,
        invalidator: Optional[CacheInvalidator] = None,
        reconciler: Optional["ShipmentReconciler"] = None,
        metrics: Optional["MetricsCollector"] = None,
        retry_config: Optional[RetryConfig] = None,
        dead_letter_capacity: int = 500,
        package: Optional[PackageDefaults] = None,
    ):
        self.store = store
        self.client = client
        self.invalidator = invalidator
        self.reconciler = reconciler
        self.metrics = metrics
        self.package = package or PackageDefaults()
        self.logger = get_logger("storefront.shipping.dispatcher")

        self.queue: "asyncio.Queue[str]" = asyncio.Queue()
        self.dead_letters: Deque[Dict[str, Any]] = deque(maxlen=dead_letter_capacity)
        self._worker_task: Optional[asyncio.Task] = None

        retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=2.0, max_delay=30.0)
        self._push_with_retry = retry_on_exception((ExternalServiceError,), config=retry_config)(self._push)

    async def start(self):
        self._worker_task = asyncio.create_task(self._worker())
        self.logger.info("Shipment dispatcher started")

    async def stop(self):
        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
        self.logger.info("Shipment dispatcher stopped", pending=self.queue.qsize())

    async def _push(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await self.client.create_adhoc_order(payload)
        except ExternalServiceError as e:
            if is_permanent_failure(e):
                raise PermanentDispatchError(e) from e
            raise

    def enqueue(self, order_id: str):
        self.queue.put_nowait(order_id)
        self.logger.debug("Shipment dispatch queued", order_id=order_id)

    async def _worker(self):
        while True:
            order_id = await self.queue.get()
            try:
                await self.dispatch(order_id)
            except Exception as e:
                self.logger.error("Unexpected shipment dispatch error", order_id=order_id, error=str(e))
            finally:
                self.queue.task_done()

    async def dispatch(self, order_id: str) -> bool:
        """Push one order to Shiprocket; returns True on success."""
        order = await self.store.get(ORDERS, order_id)
        if order is None:
            self.logger.warning("Order vanished before shipment dispatch", order_id=order_id)
            return False

        items = await self.store.find(ORDER_ITEMS, {"order_id": order_id})
        payload = build_adhoc_order_payload(order, items, self.package)

        try:
            response = await self._push_with_retry(payload)
        except PermanentDispatchError as e:
            self._dead_letter(order_id, e.error, 1)
            return False
        except RetryError as e:
            self._dead_letter(order_id, e.last_exception, e.attempts)
            return False

        changes = {}
        if isinstance(response, dict) and response.get("order_id"):
            changes["shiprocket_order_id"] = str(response["order_id"])
            if response.get("channel_order_id") is not None:
                changes["shiprocket_channel_id"] = str(response["channel_order_id"])

        if changes:
            order = await self.store.update(ORDERS, order_id, changes)
            if self.invalidator:
                await self.invalidator.invalidate(EntityGroup.ORDERS, order_id)

        self._count("success")
        self.logger.info("Order pushed to Shiprocket", order_id=order_id, **changes)

        if self.reconciler and order and order.get("shiprocket_channel_id"):
            try:
                await self.reconciler.reconcile_order(order)
            except Exception as e:
                self.logger.warning("Initial status sync failed", order_id=order_id, error=str(e))

        return True

    def _dead_letter(self, order_id: str, error: Exception, attempts: int):
        self.dead_letters.append({
            "order_id": order_id,
            "error": str(error),
            "attempts": attempts,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        })
        self._count("dead_lettered")
        if self.metrics:
            self.metrics.set_gauge("shipment_dead_letters", len(self.dead_letters))
        self.logger.error("Shipment dispatch dead-lettered", order_id=order_id, attempts=attempts, error=str(error))

    def list_dead_letters(self) -> List[Dict[str, Any]]:
        return list(self.dead_letters)

    def requeue(self, order_id: str) -> bool:
        """Move a dead-lettered order back onto the dispatch queue."""
        for entry in list(self.dead_letters):
            if entry["order_id"] == order_id:
                self.dead_letters.remove(entry)
                if self.metrics:
                    self.metrics.set_gauge("shipment_dead_letters", len(self.dead_letters))
                self.enqueue(order_id)
                self.logger.info("Dead-lettered shipment requeued", order_id=order_id)
                return True
        return False

    def _count(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("shipment_dispatch_total", result=result)
