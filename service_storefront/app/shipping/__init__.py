"""
Shipping package: Shiprocket client, order dispatch and status reconciliation.
"""

from .client import ShiprocketClient, ShipmentAuthenticationError, ShipmentRequestError
from .dispatcher import ShipmentDispatcher, PackageDefaults
from .reconciliation import ShipmentReconciler, ReconciliationSummary
from .scheduler import ReconciliationScheduler
from .status import normalize_shipment_status
from .token_cache import ShiprocketTokenCache

__all__ = [
    "ShiprocketClient",
    "ShipmentAuthenticationError",
    "ShipmentRequestError",
    "ShipmentDispatcher",
    "PackageDefaults",
    "ShipmentReconciler",
    "ReconciliationSummary",
    "ReconciliationScheduler",
    "normalize_shipment_status",
    "ShiprocketTokenCache",
]
