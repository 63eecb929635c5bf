"""
Order operations: checkout, admin management and per-customer views.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.errors import AuthorizationError, NotFoundError
from shared.logging import get_logger
from ..caching import CacheInvalidator, EntityGroup, ReadThroughCache
from ..caching import keys
from ..persistence import DocumentStore, ORDERS, ORDER_ITEMS, DESCENDING
from .models import OrderCreateRequest, OrderStatus, display_id, merge_items

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..shipping.dispatcher import ShipmentDispatcher


def with_display_id(order: Dict[str, Any]) -> Dict[str, Any]:
    return {**order, "display_id": display_id(order)}


class OrderService:
    """Orders and order items backed by the document store."""

    def __init__(
        self,
        store: DocumentStore,
        cache: ReadThroughCache,
        invalidator: CacheInvalidator,
        dispatcher: Optional["ShipmentDispatcher"] = None,
    ):
        self.store = store
        self.cache = cache
        self.invalidator = invalidator
        self.dispatcher = dispatcher
        self.logger = get_logger("storefront.orders")

    async def _items(self, order_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(ORDER_ITEMS, {"order_id": order_id})

    async def create_order(self, request: OrderCreateRequest) -> Dict[str, Any]:
        """Persist an order with its items and queue it for shipment dispatch."""
        order = await self.store.insert(ORDERS, request.to_document())
        await self.store.insert_many(
            ORDER_ITEMS,
            [{**item.model_dump(), "order_id": order["_id"]} for item in request.items],
        )
        await self.invalidator.invalidate(EntityGroup.ORDERS)

        self.logger.info(
            "Order created",
            order_id=order["_id"],
            items=len(request.items),
            total_amount=request.total_amount,
        )

        if self.dispatcher:
            self.dispatcher.enqueue(order["_id"])
        return order

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        """Public order view with items merged per product."""
        order = await self.store.get(ORDERS, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return {"order": with_display_id(order), "items": merge_items(await self._items(order_id))}

    # Admin

    async def list_admin_orders(self) -> List[Dict[str, Any]]:
        async def produce():
            return await self.store.find(ORDERS, sort=[("created_at", DESCENDING)])

        return await self.cache.cached(keys.ADMIN_ORDERS, produce, keys.ORDERS_TTL)

    async def get_admin_order(self, order_id: str) -> Dict[str, Any]:
        async def produce():
            order = await self.store.get(ORDERS, order_id)
            if not order:
                return None
            return {"order": order, "items": await self._items(order_id)}

        data = await self.cache.cached(keys.admin_order(order_id), produce, keys.ORDERS_TTL)
        if data is None:
            raise NotFoundError("Order not found")
        return data

    async def update_status(self, order_id: str, status: OrderStatus) -> Dict[str, Any]:
        order = await self.store.update(ORDERS, order_id, {"status": status.value})
        if not order:
            raise NotFoundError("Order not found")
        await self.invalidator.invalidate(EntityGroup.ORDERS, order_id)
        self.logger.info("Order status set", order_id=order_id, status=status.value)
        return order

    async def delete_order(self, order_id: str):
        if not await self.store.get(ORDERS, order_id):
            raise NotFoundError("Order not found")

        await self.store.delete_many(ORDER_ITEMS, {"order_id": order_id})
        await self.store.delete(ORDERS, order_id)
        await self.invalidator.invalidate(EntityGroup.ORDERS, order_id)
        self.logger.info("Order deleted", order_id=order_id)

    # Customer

    async def list_customer_orders(self, email: str) -> List[Dict[str, Any]]:
        orders = await self.store.find(ORDERS, {"customer_email": email}, sort=[("created_at", DESCENDING)])
        return [with_display_id(order) for order in orders]

    async def get_customer_order(self, order_id: str, email: str) -> Dict[str, Any]:
        order = await self.store.get(ORDERS, order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.get("customer_email") != email:
            raise AuthorizationError("Access denied")
        return {"order": with_display_id(order), "items": await self._items(order_id)}

    async def customer_summary(self, email: str) -> Dict[str, Any]:
        orders = await self.store.find(ORDERS, {"customer_email": email})

        def count(status: OrderStatus) -> int:
            return sum(1 for order in orders if order.get("status") == status.value)

        return {
            "totalOrders": len(orders),
            "pendingOrders": count(OrderStatus.PENDING),
            "processingOrders": count(OrderStatus.PROCESSING),
            "shippedOrders": count(OrderStatus.SHIPPED),
            "outForDeliveryOrders": count(OrderStatus.OUT_FOR_DELIVERY),
            "deliveredOrders": count(OrderStatus.DELIVERED),
            "cancelledOrders": count(OrderStatus.CANCELLED),
            "totalSpent": sum(
                order.get("total_amount") or 0
                for order in orders
                if order.get("status") != OrderStatus.CANCELLED.value
            ),
        }
