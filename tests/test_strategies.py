import logging

import pytest

from fulfillment_router.schemas.routing import RoutingFactor, RoutingStrategyId
from fulfillment_router.services.routing.strategies import (
    STRATEGIES,
    list_strategies,
    ramp_weights,
    resolve_strategy,
)


def test_catalog_has_every_strategy():
    assert set(STRATEGIES) == set(RoutingStrategyId)
    assert len(list_strategies()) == 7


@pytest.mark.parametrize("strategy", list(STRATEGIES.values()), ids=lambda s: s.id.value)
def test_weights_follow_descending_ramp(strategy):
    assert strategy.weights == ramp_weights(strategy.factors)


def test_factor_order():
    assert STRATEGIES[RoutingStrategyId.CLOSEST_FULL_STOCK].factors == [
        RoutingFactor.STOCK_AVAILABILITY,
        RoutingFactor.DISTANCE,
        RoutingFactor.CAPACITY,
    ]
    assert STRATEGIES[RoutingStrategyId.LOAD_BALANCE].factors == [
        RoutingFactor.CAPACITY_BALANCE,
        RoutingFactor.STOCK_AVAILABILITY,
    ]


def test_only_split_allowed_permits_split():
    splitting = [s.id for s in STRATEGIES.values() if s.allow_split]
    assert splitting == [RoutingStrategyId.SPLIT_ALLOWED]


@pytest.mark.parametrize("raw,expected", [
    ("lowest_cost", RoutingStrategyId.LOWEST_COST),
    ("LOWEST_COST", RoutingStrategyId.LOWEST_COST),
    ("fastest-delivery", RoutingStrategyId.FASTEST_DELIVERY),
    ("ROUND_ROBIN", RoutingStrategyId.LOAD_BALANCE),
    ("GEOGRAPHIC", RoutingStrategyId.GEOGRAPHIC_ZONE),
    (" split_allowed ", RoutingStrategyId.SPLIT_ALLOWED),
])
def test_resolve_accepts_case_and_aliases(raw, expected):
    assert resolve_strategy(raw).id == expected


def test_unknown_falls_back_to_org_default(caplog):
    with caplog.at_level(logging.WARNING):
        strategy = resolve_strategy("teleport", "warehouse_priority")

    assert strategy.id == RoutingStrategyId.WAREHOUSE_PRIORITY
    assert "teleport" in caplog.text


def test_unknown_without_default_uses_closest_full_stock(caplog):
    with caplog.at_level(logging.WARNING):
        strategy = resolve_strategy("teleport", "also-unknown")

    assert strategy.id == RoutingStrategyId.CLOSEST_FULL_STOCK
    assert "also-unknown" in caplog.text


def test_missing_id_uses_default_silently(caplog):
    with caplog.at_level(logging.WARNING):
        strategy = resolve_strategy(None, "lowest_cost")

    assert strategy.id == RoutingStrategyId.LOWEST_COST
    assert caplog.text == ""
