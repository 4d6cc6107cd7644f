"""
Warehouse routing engine.

Components, leaves first: strategy catalog, distance estimator,
inventory matrix builder, warehouse scorer, rules engine, fulfillment
planner, routing orchestrator.
"""
from fulfillment_router.services.routing.data_source import (
    RoutingDataSource,
    InMemoryRoutingDataSource,
    SQLRoutingDataSource,
)
from fulfillment_router.services.routing.distance import DistanceCache, DistanceEstimator
from fulfillment_router.services.routing.exceptions import (
    RoutingError,
    NoWarehousesAvailable,
    InsufficientStockError,
)
from fulfillment_router.services.routing.inventory import InventoryMatrix, InventoryMatrixBuilder
from fulfillment_router.services.routing.orchestrator import RoutingService
from fulfillment_router.services.routing.planner import FulfillmentPlan, FulfillmentPlanner
from fulfillment_router.services.routing.rules import RulesEngine
from fulfillment_router.services.routing.scoring import WarehouseScorer
from fulfillment_router.services.routing.strategies import (
    STRATEGIES,
    RoutingStrategy,
    list_strategies,
    resolve_strategy,
)

__all__ = [
    "RoutingDataSource",
    "InMemoryRoutingDataSource",
    "SQLRoutingDataSource",
    "DistanceCache",
    "DistanceEstimator",
    "RoutingError",
    "NoWarehousesAvailable",
    "InsufficientStockError",
    "InventoryMatrix",
    "InventoryMatrixBuilder",
    "RoutingService",
    "FulfillmentPlan",
    "FulfillmentPlanner",
    "RulesEngine",
    "WarehouseScorer",
    "STRATEGIES",
    "RoutingStrategy",
    "list_strategies",
    "resolve_strategy",
]
