"""
Shipment status reconciliation.

Polls Shiprocket for every order that has a channel id and moves the local
order status forward when the courier reports progress.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger
from ..caching import CacheInvalidator, EntityGroup
from ..persistence import DocumentStore, NOT_NULL, ORDERS
from .status import TERMINAL_STATUSES, is_permitted_transition, normalize_shipment_status

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .client import ShiprocketClient


@dataclass
class ReconciliationSummary:
    checked: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def extract_latest_status(response: Any, channel_id: str) -> Optional[str]:
    """Return ``current_status`` of the last shipment-track event, if present.

    Expected shape: ``[{<channel_id>: {"tracking_data": {"shipment_track": [...]}}}]``.
    """
    if not isinstance(response, list) or not response:
        return None

    entry = response[0]
    if not isinstance(entry, dict):
        return None

    tracking = entry.get(str(channel_id))
    if not isinstance(tracking, dict):
        return None

    tracking_data = tracking.get("tracking_data")
    if not isinstance(tracking_data, dict):
        return None

    shipment_track = tracking_data.get("shipment_track")
    if not isinstance(shipment_track, list) or not shipment_track:
        return None

    latest = shipment_track[-1]
    if not isinstance(latest, dict):
        return None
    return latest.get("current_status")


class ShipmentReconciler:
    """One reconciliation pass over all tracked orders."""

    def __init__(
        self,
        store: DocumentStore,
        client: "ShiprocketClient",
        invalidator: Optional[CacheInvalidator] = None,
        metrics: Optional["MetricsCollector"] = None,
        skip_terminal: bool = False,
    ):
        self.store = store
        self.client = client
        self.invalidator = invalidator
        self.metrics = metrics
        self.skip_terminal = skip_terminal
        self.logger = get_logger("storefront.shipping.reconciliation")

    async def run(self) -> ReconciliationSummary:
        """Reconcile every eligible order. Never raises."""
        summary = ReconciliationSummary()

        if self.metrics:
            with self.metrics.time_operation("reconciliation_duration_seconds"):
                result = await self._run(summary)
            self.metrics.increment_counter("reconciliation_runs_total", result=result)
        else:
            await self._run(summary)

        return summary

    async def _run(self, summary: ReconciliationSummary) -> str:
        try:
            orders = await self.store.find(ORDERS, {"shiprocket_channel_id": NOT_NULL})
        except Exception as e:
            self.logger.error("Failed to load orders for reconciliation", error=str(e))
            return "error"

        for order in orders:
            if self.skip_terminal and order.get("status") in TERMINAL_STATUSES:
                summary.skipped += 1
                self._count("skipped")
                continue

            summary.checked += 1
            try:
                updated = await self.reconcile_order(order)
            except Exception as e:
                summary.failed += 1
                self._count("failed")
                self.logger.error(
                    "Failed to reconcile order",
                    order_id=order.get("_id"),
                    channel_id=order.get("shiprocket_channel_id"),
                    error=str(e),
                )
                continue

            if updated:
                summary.updated += 1
                self._count("updated")
            else:
                summary.unchanged += 1
                self._count("unchanged")

        self.logger.info("Shipment status reconciliation completed", **summary.to_dict())
        return "success"

    async def reconcile_order(self, order: Dict[str, Any]) -> bool:
        """Fetch tracking for one order and persist a changed status; returns True if updated."""
        order_id = order["_id"]
        channel_id = str(order["shiprocket_channel_id"])

        response = await self.client.track_by_order_id(channel_id)
        status_text = extract_latest_status(response, channel_id)
        normalized = normalize_shipment_status(status_text)

        if normalized is None:
            self.logger.info("No recognized shipment status", order_id=order_id, status_text=status_text)
            return False

        current = order.get("status")
        if normalized.value == current:
            self.logger.debug("Order already up to date", order_id=order_id, status=current)
            return False

        if not is_permitted_transition(current, normalized):
            self.logger.info(
                "Ignoring backward status transition",
                order_id=order_id,
                current=current,
                reported=normalized.value,
            )
            return False

        if await self.store.update(ORDERS, order_id, {"status": normalized.value}) is None:
            self.logger.warning("Order deleted during reconciliation", order_id=order_id)
            return False

        self.logger.info("Order status updated", order_id=order_id, previous=current, status=normalized.value)

        if self.invalidator:
            await self.invalidator.invalidate(EntityGroup.ORDERS, order_id)
        return True

    def _count(self, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("reconciliation_orders_total", outcome=outcome)
