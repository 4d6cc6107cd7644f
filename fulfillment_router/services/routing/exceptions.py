"""Routing errors raised to callers of the routing service."""
from typing import List, Optional

from fulfillment_router.schemas.routing import ShortfallItem


class RoutingError(Exception):
    """Base class for routing failures of a single order."""

    def __init__(self, message: str, order_id: Optional[str] = None):
        self.message = message
        self.order_id = order_id
        super().__init__(message)


class NoWarehousesAvailable(RoutingError):
    """No active warehouse, or every warehouse was excluded by constraints."""
    pass


class InsufficientStockError(RoutingError):
    """No warehouse can cover the order and neither split nor backorder is allowed."""

    def __init__(
        self,
        shortfall: List[ShortfallItem],
        order_id: Optional[str] = None,
    ):
        self.shortfall = shortfall
        details = ", ".join(f"{s.sku}: short {s.shortage}" for s in shortfall)
        super().__init__(f"Insufficient stock ({details})", order_id=order_id)
