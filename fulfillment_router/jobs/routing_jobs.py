"""
Order Routing Jobs

Task-queue handlers that route orders carried in a message payload:
- route_order_message: one order
- route_batch_message: {"orders": [...]} routed independently

Both return JSON-ready dicts. Routing failures come back as a "failed"
result; database and cache errors propagate so the queue can retry.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fulfillment_router.schemas.routing import RoutingOrder
from fulfillment_router.services.cache_service import get_cache
from fulfillment_router.services.routing.data_source import SQLRoutingDataSource
from fulfillment_router.services.routing.exceptions import RoutingError
from fulfillment_router.services.routing.orchestrator import RoutingService

logger = logging.getLogger(__name__)


def _build_service(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> RoutingService:
    if session_factory is None:
        from fulfillment_router.database import async_session_factory
        session_factory = async_session_factory
    return RoutingService(SQLRoutingDataSource(session_factory), cache=get_cache())


async def route_order_message(
    payload: Dict[str, Any],
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    service: Optional[RoutingService] = None,
) -> Dict[str, Any]:
    """
    Route the order carried in a task-queue message.

    Payload keys mirror RoutingOrder; "dry_run" is optional.
    """
    order_id = payload.get("id")
    dry_run = bool(payload.get("dry_run", False))

    try:
        order = RoutingOrder.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid routing payload for order {order_id}: {e}")
        return {
            "order_id": order_id,
            "status": "failed",
            "error": str(e),
            "error_type": "ValidationError",
        }

    service = service or _build_service(session_factory)

    try:
        decision = await service.route_order(order, dry_run=dry_run)
    except RoutingError as e:
        logger.error(f"Routing failed for order {order.id}: {e}")
        result = {
            "order_id": order.id,
            "status": "failed",
            "error": str(e),
            "error_type": type(e).__name__,
        }
        shortfall = getattr(e, "shortfall", None)
        if shortfall:
            result["shortfall"] = [s.model_dump() for s in shortfall]
        return result

    return {
        "order_id": order.id,
        "status": "routed",
        "decision": decision.model_dump(mode="json"),
    }


async def route_batch_message(
    payload: Dict[str, Any],
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    service: Optional[RoutingService] = None,
) -> Dict[str, Any]:
    """
    Route every order in {"orders": [...], "concurrency": n, "dry_run": bool}.

    Orders that fail validation are reported in their own slot.
    """
    logger.info("Starting batch routing job...")
    raw_orders = payload.get("orders") or []
    dry_run = bool(payload.get("dry_run", False))

    orders = []
    invalid = {}
    for position, raw in enumerate(raw_orders):
        try:
            orders.append(RoutingOrder.model_validate(raw))
        except ValidationError as e:
            invalid[position] = {
                "order_id": raw.get("id") if isinstance(raw, dict) else None,
                "status": "failed",
                "decision": None,
                "error": str(e),
                "error_type": "ValidationError",
            }

    service = service or _build_service(session_factory)
    summary = await service.route_orders(
        orders,
        concurrency=payload.get("concurrency"),
        dry_run=dry_run,
    )

    result = summary.model_dump(mode="json")
    if invalid:
        # Put rejected payloads back in their input slots
        routed_results = iter(result["results"])
        result["results"] = [
            invalid[position] if position in invalid else next(routed_results)
            for position in range(len(raw_orders))
        ]
        result["total"] += len(invalid)
        result["failed"] += len(invalid)
        logger.warning(f"Skipped {len(invalid)} invalid orders in routing batch")
    return result
