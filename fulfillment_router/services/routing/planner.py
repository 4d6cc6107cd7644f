"""
Fulfillment Planner.

Turns ranked warehouse scores and an inventory snapshot into a single,
split or backorder plan.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from fulfillment_router.schemas.routing import (
    AllocatedItem,
    DecisionType,
    OrderItem,
    RoutingConfig,
    RoutingOrder,
    Shipment,
    ShortfallItem,
    WarehouseScore,
)
from fulfillment_router.services.routing.exceptions import (
    InsufficientStockError,
    NoWarehousesAvailable,
)
from fulfillment_router.services.routing.inventory import InventoryMatrix
from fulfillment_router.services.routing.scoring import estimate_shipping_cost
from fulfillment_router.services.routing.strategies import RoutingStrategy

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentPlan:
    type: DecisionType
    shipments: List[Shipment]
    unallocated: Optional[List[AllocatedItem]] = None
    shortfall: Optional[List[ShortfallItem]] = None

    @property
    def total_shipping_cost(self) -> float:
        return round(sum(s.estimated_shipping_cost for s in self.shipments), 2)

    def allocated_quantities(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for shipment in self.shipments:
            if shipment.backordered:
                continue
            for item in shipment.items:
                totals[item.sku] = totals.get(item.sku, 0) + item.quantity
        return totals


class FulfillmentPlanner:
    """Single / split / backorder decision procedure."""

    def plan(
        self,
        order: RoutingOrder,
        scores: List[WarehouseScore],
        inventory: InventoryMatrix,
        strategy: RoutingStrategy,
        config: RoutingConfig,
        pinned_warehouse_id: Optional[str] = None,
    ) -> FulfillmentPlan:
        ranked = sorted(scores, key=lambda s: (-s.total, s.warehouse_id))
        candidates = [s for s in ranked if s.eligible]
        if pinned_warehouse_id:
            candidates = [s for s in candidates if s.warehouse_id == pinned_warehouse_id]

        if not candidates:
            raise NoWarehousesAvailable(
                "No eligible warehouse after applying order constraints",
                order_id=order.id,
            )

        # 1. Single warehouse with full stock
        for score in candidates:
            if inventory.covers(score.warehouse_id, order.items):
                return FulfillmentPlan(
                    type=DecisionType.SINGLE,
                    shipments=[self._full_shipment(order, score)],
                )

        # 2. Greedy split
        if strategy.allow_split or config.allow_split:
            plan = self._plan_split(order, candidates, inventory, config.max_split_shipments)
            if plan is not None:
                return plan
            logger.debug(f"Split walk allocated nothing for order {order.id}")

        best = candidates[0]
        best_shortfall = inventory.shortfall(best.warehouse_id, order.items)

        # 3. Backorder against the best warehouse
        if config.allow_backorder:
            shipment = self._full_shipment(order, best)
            shipment.backordered = best_shortfall
            return FulfillmentPlan(
                type=DecisionType.BACKORDER,
                shipments=[shipment],
                shortfall=best_shortfall,
            )

        # Stock spread across warehouses can cover the order while no single
        # one does; report the best warehouse's gap in that case
        shortfall = inventory.network_shortfall(
            [c.warehouse_id for c in candidates], order.items
        ) or best_shortfall
        raise InsufficientStockError(shortfall, order_id=order.id)

    @staticmethod
    def _full_shipment(order: RoutingOrder, score: WarehouseScore) -> Shipment:
        return Shipment(
            warehouse_id=score.warehouse_id,
            warehouse_code=score.warehouse_code,
            items=[AllocatedItem(sku=i.sku, quantity=i.quantity) for i in order.items],
            score=score.total,
            estimated_shipping_cost=score.details.shipping_cost,
            estimated_delivery_days=score.details.delivery_days,
        )

    def _plan_split(
        self,
        order: RoutingOrder,
        candidates: List[WarehouseScore],
        inventory: InventoryMatrix,
        max_shipments: Optional[int],
    ) -> Optional[FulfillmentPlan]:
        """Walk warehouses in score order allocating min(available, outstanding)."""
        outstanding: Dict[str, int] = {item.sku: item.quantity for item in order.items}
        weights = {item.sku: item.weight_kg for item in order.items}
        shipments: List[Shipment] = []

        for score in candidates:
            if max_shipments is not None and len(shipments) >= max_shipments:
                break
            if not any(outstanding.values()):
                break

            allocated: List[AllocatedItem] = []
            for sku, remaining in outstanding.items():
                if remaining <= 0:
                    continue
                quantity = min(inventory.available(sku, score.warehouse_id), remaining)
                if quantity > 0:
                    allocated.append(AllocatedItem(sku=sku, quantity=quantity))

            if not allocated:
                continue
            for item in allocated:
                outstanding[item.sku] -= item.quantity

            subset = [
                OrderItem(sku=a.sku, quantity=a.quantity, weight_kg=weights[a.sku])
                for a in allocated
            ]
            shipments.append(Shipment(
                warehouse_id=score.warehouse_id,
                warehouse_code=score.warehouse_code,
                items=allocated,
                score=score.total,
                estimated_shipping_cost=estimate_shipping_cost(
                    score.details.distance_km, subset, order.delivery_type
                ),
                estimated_delivery_days=score.details.delivery_days,
            ))

        if not shipments:
            return None

        unallocated = [
            AllocatedItem(sku=sku, quantity=qty)
            for sku, qty in outstanding.items() if qty > 0
        ]
        if unallocated:
            logger.info(
                f"Order {order.id} split across {len(shipments)} warehouses "
                f"with {len(unallocated)} unallocated SKUs"
            )

        return FulfillmentPlan(
            type=DecisionType.SPLIT,
            shipments=shipments,
            unallocated=unallocated or None,
        )
