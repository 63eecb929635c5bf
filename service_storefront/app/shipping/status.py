"""
Courier status normalization.
"""

from typing import Optional, Tuple

from ..orders.models import OrderStatus


# Checked in order; the first rule with a matching phrase wins.
_STATUS_RULES: Tuple[Tuple[Tuple[str, ...], OrderStatus], ...] = (
    (("pending",), OrderStatus.PENDING),
    (("confirmed", "processing"), OrderStatus.PROCESSING),
    (("shipped", "in transit"), OrderStatus.SHIPPED),
    (("out for delivery",), OrderStatus.OUT_FOR_DELIVERY),
    (("delivered",), OrderStatus.DELIVERED),
    (("cancelled",), OrderStatus.CANCELLED),
)

_PROGRESS = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.OUT_FOR_DELIVERY: 3,
    OrderStatus.DELIVERED: 4,
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value})


def normalize_shipment_status(text: Optional[str]) -> Optional[OrderStatus]:
    """Map free-text courier status to an order status, or None if unrecognized."""
    if not text:
        return None

    lowered = text.lower()
    for phrases, status in _STATUS_RULES:
        if any(phrase in lowered for phrase in phrases):
            return status
    return None


def is_permitted_transition(current: Optional[str], new: OrderStatus) -> bool:
    """Whether reconciliation may move an order from ``current`` to ``new``.

    Progress only moves forward along the delivery path. Cancellation is
    accepted from any non-cancelled state and is never left. An unknown
    current status accepts the new one.
    """
    try:
        current_status = OrderStatus(current)
    except ValueError:
        return True

    if current_status == new:
        return False
    if current_status == OrderStatus.CANCELLED:
        return False
    if new == OrderStatus.CANCELLED:
        return True
    return _PROGRESS[new] > _PROGRESS[current_status]
