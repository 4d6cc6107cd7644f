"""
Background Jobs Module

Task-queue entry points for:
- Routing a single order
- Routing a batch of orders
"""

from fulfillment_router.jobs.routing_jobs import route_order_message, route_batch_message

__all__ = [
    "route_order_message",
    "route_batch_message",
]
