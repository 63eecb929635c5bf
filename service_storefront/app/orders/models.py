"""
Order request and domain models.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Order lifecycle states."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItemIn(BaseModel):
    product_id: str
    product_name: str
    product_price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    quantity: int = Field(..., ge=1)
    subtotal: float = Field(..., ge=0)


class OrderCreateRequest(BaseModel):
    """Checkout payload; accepts the storefront's camelCase field names."""

    model_config = ConfigDict(populate_by_name=True)

    customer_name: str = Field(..., min_length=1, alias="customerName")
    customer_last_name: Optional[str] = Field(None, alias="customerLastName")
    customer_email: str = Field(..., min_length=3, alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    shipping_address: str = Field(..., min_length=1, alias="shippingAddress")
    city: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    country: Optional[str] = None
    total_amount: float = Field(..., ge=0, alias="totalAmount")
    items: List[OrderItemIn]

    def to_document(self) -> dict:
        document = self.model_dump(exclude={"items"})
        document["status"] = OrderStatus.PENDING.value
        document["shiprocket_order_id"] = None
        document["shiprocket_channel_id"] = None
        return document


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


def display_id(order: dict) -> str:
    """Customer-facing order reference: the Shiprocket channel id once assigned."""
    return order.get("shiprocket_channel_id") or order["_id"]


def merge_items(items: List[dict]) -> List[dict]:
    """Collapse order items sharing a product, summing quantity and subtotal."""
    merged = {}
    for item in items:
        product_id = item.get("product_id")
        if product_id in merged:
            merged[product_id]["quantity"] += item.get("quantity", 0)
            merged[product_id]["subtotal"] += item.get("subtotal", 0)
        else:
            merged[product_id] = dict(item)
    return list(merged.values())
