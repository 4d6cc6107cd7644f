"""
Routing Strategy Catalog.

Each strategy is an explicit weight map over routing factors plus a
split-allowed flag. Weights follow a descending ramp of 10 per position
(first factor weighs most).
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from fulfillment_router.schemas.routing import RoutingFactor, RoutingStrategyId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingStrategy:
    id: RoutingStrategyId
    name: str
    weights: Dict[RoutingFactor, int]
    allow_split: bool = False

    @property
    def factors(self) -> List[RoutingFactor]:
        """Factors ordered by weight, heaviest first."""
        return sorted(self.weights, key=lambda f: self.weights[f], reverse=True)


def ramp_weights(factors: Sequence[RoutingFactor]) -> Dict[RoutingFactor, int]:
    """Weight of factor at position i in an N-length list = (N - i) * 10."""
    n = len(factors)
    return {factor: (n - i) * 10 for i, factor in enumerate(factors)}


F = RoutingFactor

STRATEGIES: Dict[RoutingStrategyId, RoutingStrategy] = {
    RoutingStrategyId.CLOSEST_FULL_STOCK: RoutingStrategy(
        id=RoutingStrategyId.CLOSEST_FULL_STOCK,
        name="Closest warehouse with full stock",
        weights={F.STOCK_AVAILABILITY: 30, F.DISTANCE: 20, F.CAPACITY: 10},
    ),
    RoutingStrategyId.LOWEST_COST: RoutingStrategy(
        id=RoutingStrategyId.LOWEST_COST,
        name="Lowest shipping cost",
        weights={F.SHIPPING_COST: 30, F.STOCK_AVAILABILITY: 20, F.DISTANCE: 10},
    ),
    RoutingStrategyId.FASTEST_DELIVERY: RoutingStrategy(
        id=RoutingStrategyId.FASTEST_DELIVERY,
        name="Fastest delivery",
        weights={F.DELIVERY_TIME: 20, F.STOCK_AVAILABILITY: 10},
    ),
    RoutingStrategyId.SPLIT_ALLOWED: RoutingStrategy(
        id=RoutingStrategyId.SPLIT_ALLOWED,
        name="Multiple shipments allowed",
        weights={F.STOCK_AVAILABILITY: 30, F.DELIVERY_TIME: 20, F.SHIPPING_COST: 10},
        allow_split=True,
    ),
    RoutingStrategyId.WAREHOUSE_PRIORITY: RoutingStrategy(
        id=RoutingStrategyId.WAREHOUSE_PRIORITY,
        name="Warehouse priority",
        weights={F.WAREHOUSE_PRIORITY: 30, F.STOCK_AVAILABILITY: 20, F.DISTANCE: 10},
    ),
    RoutingStrategyId.LOAD_BALANCE: RoutingStrategy(
        id=RoutingStrategyId.LOAD_BALANCE,
        name="Load balancing",
        weights={F.CAPACITY_BALANCE: 20, F.STOCK_AVAILABILITY: 10},
    ),
    RoutingStrategyId.GEOGRAPHIC_ZONE: RoutingStrategy(
        id=RoutingStrategyId.GEOGRAPHIC_ZONE,
        name="Geographic zone",
        weights={F.ZONE_ASSIGNMENT: 30, F.STOCK_AVAILABILITY: 20, F.DISTANCE: 10},
    ),
}

# Upper-case ids stored by older organization settings
_ALIASES: Dict[str, RoutingStrategyId] = {
    "round_robin": RoutingStrategyId.LOAD_BALANCE,
    "geographic": RoutingStrategyId.GEOGRAPHIC_ZONE,
}

DEFAULT_STRATEGY = RoutingStrategyId.CLOSEST_FULL_STOCK


def _lookup(strategy_id: Optional[str]) -> Optional[RoutingStrategy]:
    if not strategy_id:
        return None
    key = str(strategy_id).strip().lower().replace("-", "_")
    if key in _ALIASES:
        return STRATEGIES[_ALIASES[key]]
    try:
        return STRATEGIES[RoutingStrategyId(key)]
    except ValueError:
        return None


def resolve_strategy(
    strategy_id: Optional[str],
    default_id: Optional[str] = None,
) -> RoutingStrategy:
    """
    Resolve a strategy id.

    Unknown ids fall back to the organization default, then to
    closest_full_stock. Never raises.
    """
    strategy = _lookup(strategy_id)
    if strategy:
        return strategy

    fallback = _lookup(default_id)
    if strategy_id:
        logger.warning(
            f"Unknown routing strategy '{strategy_id}', "
            f"falling back to '{(fallback or STRATEGIES[DEFAULT_STRATEGY]).id.value}'"
        )
    if fallback:
        return fallback

    if default_id:
        logger.warning(f"Unknown default routing strategy '{default_id}', using '{DEFAULT_STRATEGY.value}'")
    return STRATEGIES[DEFAULT_STRATEGY]


def list_strategies() -> List[RoutingStrategy]:
    return list(STRATEGIES.values())
