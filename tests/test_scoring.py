import pytest

from fulfillment_router.schemas.routing import (
    DeliveryType,
    Location,
    OrderItem,
    RoutingConfig,
    RoutingConstraints,
    RoutingFactor,
    RoutingStrategyId,
    WarehouseZoneInfo,
)
from fulfillment_router.services.routing.distance import DistanceCache, DistanceEstimator
from fulfillment_router.services.routing.inventory import InventoryMatrix
from fulfillment_router.services.routing.scoring import (
    WarehouseScorer,
    delivery_time_score,
    estimate_delivery_days,
    estimate_shipping_cost,
    fleet_average_orders,
    stock_score,
    zone_matches,
)
from fulfillment_router.services.routing.strategies import STRATEGIES
from tests.conftest import BERLIN, LYON, PARIS

CLOSEST = STRATEGIES[RoutingStrategyId.CLOSEST_FULL_STOCK]
ZONE = STRATEGIES[RoutingStrategyId.GEOGRAPHIC_ZONE]
BALANCE = STRATEGIES[RoutingStrategyId.LOAD_BALANCE]


@pytest.fixture
def scorer():
    return WarehouseScorer(DistanceEstimator(DistanceCache(100)))


@pytest.fixture
def config():
    return RoutingConfig()


@pytest.fixture
def full_stock():
    return InventoryMatrix({"SKU-A": {PARIS: 10, LYON: 10, BERLIN: 10}})


def test_stock_score_is_proportional():
    matrix = InventoryMatrix({"SKU-A": {PARIS: 2}, "SKU-B": {PARIS: 9}})
    items = [OrderItem(sku="SKU-A", quantity=4), OrderItem(sku="SKU-B", quantity=4)]
    assert stock_score(PARIS, items, matrix) == pytest.approx(75.0)


def test_stock_score_is_100_only_with_full_coverage():
    matrix = InventoryMatrix({"SKU-A": {PARIS: 4}, "SKU-B": {PARIS: 3}})
    items = [OrderItem(sku="SKU-A", quantity=4), OrderItem(sku="SKU-B", quantity=4)]

    assert stock_score(PARIS, items, matrix) < 100
    assert stock_score(PARIS, items[:1], matrix) == 100
    assert stock_score(LYON, items, matrix) == 0


def test_shipping_cost_base_rate():
    items = [OrderItem(sku="SKU-A", quantity=1)]
    assert estimate_shipping_cost(100, items) == pytest.approx(4.99)


def test_shipping_cost_weight_and_distance_surcharges():
    heavy = [OrderItem(sku="SKU-A", quantity=10)]  # 10 x 0.5 kg default
    light = [OrderItem(sku="SKU-A", quantity=1, weight_kg=0.2)]

    assert estimate_shipping_cost(100, heavy) == pytest.approx(6.49)
    assert estimate_shipping_cost(500, light) == pytest.approx(6.99)


def test_shipping_cost_express_multiplier():
    items = [OrderItem(sku="SKU-A", quantity=1)]
    assert estimate_shipping_cost(100, items, DeliveryType.EXPRESS) == pytest.approx(8.98)


def test_delivery_days(warehouses):
    paris, _, berlin = warehouses
    destination = Location(country="FR", postal_code="75008")

    assert estimate_delivery_days(paris, destination, 10) == 3
    assert estimate_delivery_days(paris, destination, 10, DeliveryType.EXPRESS) == 1
    assert estimate_delivery_days(paris, destination, 600) == 4
    assert estimate_delivery_days(berlin, destination, 880) == 7


@pytest.mark.parametrize("days,expected", [
    (1, 100.0),
    (2, 100.0),
    (3, 84.0),
    (7, 20.0),
    (9, 20.0),
])
def test_delivery_time_score(days, expected):
    assert delivery_time_score(days, target_days=2, max_days=7) == pytest.approx(expected)


@pytest.mark.parametrize("strategy", list(STRATEGIES.values()), ids=lambda s: s.id.value)
def test_factor_scores_stay_in_range(scorer, config, warehouses, full_stock, make_order, strategy):
    order = make_order([("SKU-A", 3), ("SKU-B", 200)], delivery_type=DeliveryType.EXPRESS)

    for result in scorer.score_all(order, warehouses, full_stock, strategy, config):
        assert len(result.scores) == len(RoutingFactor)
        for value in result.scores.values():
            assert 0 <= value <= 100


def test_composite_is_weighted_mean(scorer, config, warehouses, full_stock, make_order):
    order = make_order([("SKU-A", 1)])
    result = scorer.score(order, warehouses[1], full_stock, CLOSEST, config)

    s = result.scores
    expected = (30 * s["stock_availability"] + 20 * s["distance"] + 10 * s["capacity"]) / 60
    assert result.total == pytest.approx(expected)
    assert result.can_fulfill_complete


def test_capacity_score(scorer, config, make_warehouse, full_stock, make_order):
    order = make_order([("SKU-A", 1)])
    half_full = make_warehouse(PARIS, "PAR", "FR", "75001", 48.8566, 2.3522,
                               daily_capacity=100, current_day_orders=50)
    no_capacity = make_warehouse(LYON, "LYS", "FR", "69002", 45.764, 4.8357,
                                 daily_capacity=0, current_day_orders=5)

    assert scorer.score(order, half_full, full_stock, CLOSEST, config).scores["capacity"] == 50
    result = scorer.score(order, no_capacity, full_stock, CLOSEST, config)
    assert result.scores["capacity"] == 0
    assert result.details.current_load == 100


def test_capacity_balance_against_fleet_average(scorer, config, make_warehouse, full_stock, make_order):
    order = make_order([("SKU-A", 1)])
    fleet = [
        make_warehouse(PARIS, "PAR", "FR", "75001", 48.8566, 2.3522, current_day_orders=0),
        make_warehouse(LYON, "LYS", "FR", "69002", 45.764, 4.8357, current_day_orders=10),
        make_warehouse(BERLIN, "BER", "DE", "10115", 52.52, 13.405, current_day_orders=20),
    ]
    assert fleet_average_orders(fleet) == 10

    by_id = {s.warehouse_id: s for s in scorer.score_all(order, fleet, full_stock, BALANCE, config)}
    assert by_id[PARIS].scores["capacity_balance"] == 100
    assert by_id[LYON].scores["capacity_balance"] == 50
    assert by_id[BERLIN].scores["capacity_balance"] == 0


def test_capacity_balance_with_idle_fleet(scorer, config, warehouses, full_stock, make_order):
    order = make_order([("SKU-A", 1)])
    for result in scorer.score_all(order, warehouses, full_stock, BALANCE, config):
        assert result.scores["capacity_balance"] == 100


def test_zone_matches_by_each_criterion():
    destination = Location(country="FR", postal_code="75008", latitude=48.87, longitude=2.30)

    assert zone_matches([WarehouseZoneInfo(postal_prefix="75")], destination)
    assert zone_matches([WarehouseZoneInfo(country="fr")], destination)
    assert zone_matches([WarehouseZoneInfo(
        latitude_min=48.0, latitude_max=49.0, longitude_min=2.0, longitude_max=3.0,
    )], destination)
    assert not zone_matches([WarehouseZoneInfo(postal_prefix="69")], destination)
    assert not zone_matches([WarehouseZoneInfo(latitude_min=48.0, latitude_max=49.0)], destination)
    assert not zone_matches([], destination)


def test_zone_match_scenario(scorer, config, warehouses, full_stock, make_order):
    order = make_order([("SKU-A", 1)], postal_code="75011", latitude=None, longitude=None)

    by_id = {s.warehouse_id: s for s in scorer.score_all(order, warehouses, full_stock, ZONE, config)}

    assert by_id[PARIS].scores["zone_assignment"] == 100
    assert by_id[PARIS].details.zone_match
    assert by_id[LYON].scores["zone_assignment"] == 0
    assert by_id[BERLIN].scores["zone_assignment"] == 0


def test_excluded_warehouse_scores_zero(scorer, config, warehouses, full_stock, make_order):
    order = make_order(
        [("SKU-A", 1)],
        constraints=RoutingConstraints(exclude_warehouses=[PARIS], prefer_warehouses=[PARIS]),
    )

    by_id = {s.warehouse_id: s for s in scorer.score_all(order, warehouses, full_stock, CLOSEST, config)}

    assert by_id[PARIS].total == 0
    assert not by_id[PARIS].eligible
    assert by_id[PARIS].disqualified_reason == "excluded"
    assert by_id[LYON].eligible


def test_preferred_warehouse_bonus(scorer, config, warehouses, full_stock, make_order):
    plain = make_order([("SKU-A", 1)])
    preferred = make_order(
        [("SKU-A", 1)],
        constraints=RoutingConstraints(prefer_warehouses=[LYON]),
    )

    base = scorer.score(plain, warehouses[1], full_stock, CLOSEST, config)
    boosted = scorer.score(preferred, warehouses[1], full_stock, CLOSEST, config)

    assert boosted.preferred
    assert boosted.total == pytest.approx(base.total * 1.2)


def test_max_distance_disqualifies(scorer, config, warehouses, full_stock, make_order):
    order = make_order([("SKU-A", 1)], constraints=RoutingConstraints(max_distance_km=100))

    by_id = {s.warehouse_id: s for s in scorer.score_all(order, warehouses, full_stock, CLOSEST, config)}

    assert by_id[PARIS].eligible
    for far in (LYON, BERLIN):
        assert by_id[far].total == 0
        assert by_id[far].disqualified_reason == "max_distance_exceeded"


def test_score_all_ranks_descending_with_id_tiebreak(scorer, config, make_warehouse, make_order):
    twins = [
        make_warehouse("wh-b", "B", "FR", "75001", 48.8566, 2.3522),
        make_warehouse("wh-a", "A", "FR", "75001", 48.8566, 2.3522),
        make_warehouse("wh-c", "C", "FR", "69002", 45.764, 4.8357),
    ]
    stock = InventoryMatrix({"SKU-A": {"wh-a": 5, "wh-b": 5, "wh-c": 5}})
    order = make_order([("SKU-A", 1)])

    ranked = scorer.score_all(order, twins, stock, CLOSEST, config)

    assert [s.warehouse_id for s in ranked] == ["wh-a", "wh-b", "wh-c"]
