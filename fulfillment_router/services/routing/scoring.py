"""
Warehouse Scorer.

Scores every warehouse for one order under one strategy:
1. Stock availability - proportional coverage of requested quantities
2. Distance - 1 point lost per 10 km
3. Shipping cost - estimated cost against the org's cost ceiling
4. Delivery time - estimated days against the target/max window
5. Capacity - today's committed orders against daily capacity
6. Warehouse priority - configured priority, used as-is
7. Zone assignment - destination inside one of the warehouse's zones
8. Capacity balance - load relative to the fleet average

The composite is the strategy-weighted mean of its factors, then order
constraints (exclude / prefer / max distance) are applied.
"""
import logging
from typing import Dict, Iterable, List, Optional

from fulfillment_router.schemas.routing import (
    DeliveryType,
    Location,
    OrderItem,
    RoutingConfig,
    RoutingFactor,
    RoutingOrder,
    ScoreDetails,
    WarehouseInfo,
    WarehouseScore,
    WarehouseZoneInfo,
)
from fulfillment_router.services.routing.distance import DistanceEstimator
from fulfillment_router.services.routing.inventory import InventoryMatrix
from fulfillment_router.services.routing.strategies import RoutingStrategy

logger = logging.getLogger(__name__)

DEFAULT_ITEM_WEIGHT_KG = 0.5
BASE_SHIPPING_COST = 4.99
FREE_WEIGHT_KG = 2.0
WEIGHT_SURCHARGE_PER_KG = 0.5
FREE_DISTANCE_KM = 300.0
DISTANCE_SURCHARGE_PER_KM = 0.01
EXPRESS_MULTIPLIER = 1.8

PREFERRED_BONUS = 1.2
SLOW_DELIVERY_SCORE = 20.0

EXCLUDED = "excluded"
MAX_DISTANCE_EXCEEDED = "max_distance_exceeded"


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def estimate_shipping_cost(
    distance_km: float,
    items: Iterable[OrderItem],
    delivery_type: DeliveryType = DeliveryType.STANDARD,
) -> float:
    """Distance and weight based estimate; carrier rates are not consulted."""
    total_weight = sum(
        (item.weight_kg if item.weight_kg is not None else DEFAULT_ITEM_WEIGHT_KG) * item.quantity
        for item in items
    )

    cost = BASE_SHIPPING_COST
    if total_weight > FREE_WEIGHT_KG:
        cost += (total_weight - FREE_WEIGHT_KG) * WEIGHT_SURCHARGE_PER_KG
    if distance_km > FREE_DISTANCE_KM:
        cost += (distance_km - FREE_DISTANCE_KM) * DISTANCE_SURCHARGE_PER_KM
    if delivery_type == DeliveryType.EXPRESS:
        cost *= EXPRESS_MULTIPLIER

    return round(cost, 2)


def estimate_delivery_days(
    warehouse: WarehouseInfo,
    destination: Location,
    distance_km: float,
    delivery_type: DeliveryType = DeliveryType.STANDARD,
) -> int:
    days = 1 if delivery_type == DeliveryType.EXPRESS else 3
    if warehouse.location.country != destination.country:
        days += 3
    if distance_km > 500:
        days += 1
    return days


def zone_matches(zones: Iterable[WarehouseZoneInfo], destination: Location) -> bool:
    """True if any zone binds the destination by country, postal prefix or bounding box."""
    prefix = destination.postal_prefix
    for zone in zones:
        if zone.country and zone.country.upper() == destination.country:
            return True
        if zone.postal_prefix and prefix and zone.postal_prefix == prefix:
            return True
        bounds = (zone.latitude_min, zone.latitude_max, zone.longitude_min, zone.longitude_max)
        if destination.has_coordinates and all(b is not None for b in bounds):
            if (zone.latitude_min <= destination.latitude <= zone.latitude_max
                    and zone.longitude_min <= destination.longitude <= zone.longitude_max):
                return True
    return False


def fleet_average_orders(warehouses: Iterable[WarehouseInfo]) -> float:
    loads = [w.current_day_orders for w in warehouses if w.is_active]
    if not loads:
        return 0.0
    return sum(loads) / len(loads)


def stock_score(
    warehouse_id: str,
    items: Iterable[OrderItem],
    inventory: InventoryMatrix,
) -> float:
    """100 x covered units / requested units."""
    total_required = 0
    total_covered = 0
    for item in items:
        total_required += item.quantity
        total_covered += min(inventory.available(item.sku, warehouse_id), item.quantity)
    if total_required == 0:
        return 0.0
    return 100.0 * total_covered / total_required


def delivery_time_score(days: int, target_days: int, max_days: int) -> float:
    if days <= target_days:
        return 100.0
    if days >= max_days:
        return SLOW_DELIVERY_SCORE
    span = max_days - target_days
    return 100.0 - (100.0 - SLOW_DELIVERY_SCORE) * (days - target_days) / span


class WarehouseScorer:
    """Scores warehouses for an order under a strategy."""

    def __init__(self, distance_estimator: Optional[DistanceEstimator] = None):
        self.distance_estimator = distance_estimator or DistanceEstimator()

    def score(
        self,
        order: RoutingOrder,
        warehouse: WarehouseInfo,
        inventory: InventoryMatrix,
        strategy: RoutingStrategy,
        config: RoutingConfig,
        fleet_average: float = 0.0,
    ) -> WarehouseScore:
        destination = order.delivery_address
        scores: Dict[str, float] = {}

        # 1. Stock availability
        scores[RoutingFactor.STOCK_AVAILABILITY.value] = stock_score(warehouse.id, order.items, inventory)
        missing_items = inventory.shortfall(warehouse.id, order.items)

        # 2. Distance
        distance_km = self.distance_estimator.distance(warehouse, destination)
        scores[RoutingFactor.DISTANCE.value] = _clamp(100 - distance_km / 10)

        # 3. Shipping cost
        shipping_cost = estimate_shipping_cost(distance_km, order.items, order.delivery_type)
        scores[RoutingFactor.SHIPPING_COST.value] = _clamp(
            100 - 100 * shipping_cost / config.max_acceptable_shipping_cost
        )

        # 4. Delivery time
        delivery_days = estimate_delivery_days(warehouse, destination, distance_km, order.delivery_type)
        target_days, max_days = config.delivery_window(order.delivery_type)
        scores[RoutingFactor.DELIVERY_TIME.value] = delivery_time_score(delivery_days, target_days, max_days)

        # 5. Capacity
        capacity = _clamp(100 - 100 * warehouse.current_day_orders / max(warehouse.daily_capacity, 1))
        scores[RoutingFactor.CAPACITY.value] = capacity

        # 6. Warehouse priority
        scores[RoutingFactor.WAREHOUSE_PRIORITY.value] = _clamp(float(warehouse.priority))

        # 7. Zone assignment
        zone_match = zone_matches(warehouse.zones, destination)
        scores[RoutingFactor.ZONE_ASSIGNMENT.value] = 100.0 if zone_match else 0.0

        # 8. Capacity balance
        if fleet_average <= 0:
            scores[RoutingFactor.CAPACITY_BALANCE.value] = 100.0
        else:
            scores[RoutingFactor.CAPACITY_BALANCE.value] = _clamp(
                100 - 50 * warehouse.current_day_orders / fleet_average
            )

        # Weighted composite over the strategy's factors only
        total_weight = sum(strategy.weights.values())
        weighted = sum(scores[factor.value] * weight for factor, weight in strategy.weights.items())
        total = weighted / total_weight if total_weight > 0 else 0.0

        result = WarehouseScore(
            warehouse_id=warehouse.id,
            warehouse_code=warehouse.code,
            total=total,
            scores=scores,
            details=ScoreDetails(
                stock_coverage=scores[RoutingFactor.STOCK_AVAILABILITY.value] / 100,
                distance_km=round(distance_km, 3),
                shipping_cost=shipping_cost,
                delivery_days=delivery_days,
                missing_items=missing_items,
                zone_match=zone_match,
                current_load=100 - capacity,
            ),
            can_fulfill_complete=not missing_items,
        )
        return self._apply_constraints(result, order, distance_km)

    @staticmethod
    def _apply_constraints(
        result: WarehouseScore,
        order: RoutingOrder,
        distance_km: float,
    ) -> WarehouseScore:
        constraints = order.constraints

        if result.warehouse_id in constraints.exclude_warehouses:
            result.total = 0.0
            result.eligible = False
            result.disqualified_reason = EXCLUDED

        if result.warehouse_id in constraints.prefer_warehouses:
            result.total *= PREFERRED_BONUS
            result.preferred = True

        if constraints.max_distance_km is not None and distance_km > constraints.max_distance_km:
            result.total = 0.0
            result.eligible = False
            result.disqualified_reason = result.disqualified_reason or MAX_DISTANCE_EXCEEDED

        return result

    def score_all(
        self,
        order: RoutingOrder,
        warehouses: List[WarehouseInfo],
        inventory: InventoryMatrix,
        strategy: RoutingStrategy,
        config: RoutingConfig,
    ) -> List[WarehouseScore]:
        """Score every warehouse, highest composite first."""
        fleet_average = fleet_average_orders(warehouses)
        scored = [
            self.score(order, warehouse, inventory, strategy, config, fleet_average)
            for warehouse in warehouses
        ]
        scored.sort(key=lambda s: (-s.total, s.warehouse_id))

        logger.debug(
            f"Scored {len(scored)} warehouses for order {order.id} "
            f"with strategy '{strategy.id.value}'"
        )
        return scored
