"""Pytest configuration and fixtures."""

from typing import Callable, List, Optional

import pytest
import pytest_asyncio

from fulfillment_router.database import create_engine_from_url, create_session_factory, init_db
from fulfillment_router.schemas.routing import (
    Location,
    OrderItem,
    RoutingConfig,
    RoutingOrder,
    StockRow,
    WarehouseInfo,
    WarehouseZoneInfo,
)
from fulfillment_router.services.cache_service import CacheService, InMemoryCache
from fulfillment_router.services.routing.data_source import InMemoryRoutingDataSource
from fulfillment_router.services.routing.distance import DistanceCache, DistanceEstimator
from fulfillment_router.services.routing.orchestrator import RoutingService

ORG_ID = "org-test"

PARIS = "wh-paris"
LYON = "wh-lyon"
BERLIN = "wh-berlin"


def _warehouse(
    warehouse_id: str,
    code: str,
    country: str,
    postal_code: str,
    latitude: Optional[float],
    longitude: Optional[float],
    **kwargs,
) -> WarehouseInfo:
    return WarehouseInfo(
        id=warehouse_id,
        org_id=kwargs.pop("org_id", ORG_ID),
        code=code,
        name=code.title(),
        location=Location(
            country=country,
            postal_code=postal_code,
            latitude=latitude,
            longitude=longitude,
        ),
        **kwargs,
    )


@pytest.fixture
def make_warehouse() -> Callable[..., WarehouseInfo]:
    return _warehouse


@pytest.fixture
def warehouses() -> List[WarehouseInfo]:
    """Paris, Lyon and Berlin warehouses with geocoordinates."""
    return [
        _warehouse(PARIS, "PAR", "FR", "75001", 48.8566, 2.3522,
                   zones=[WarehouseZoneInfo(postal_prefix="75")]),
        _warehouse(LYON, "LYS", "FR", "69002", 45.7640, 4.8357),
        _warehouse(BERLIN, "BER", "DE", "10115", 52.5200, 13.4050),
    ]


@pytest.fixture
def make_order() -> Callable[..., RoutingOrder]:
    """Build an order delivered to Paris 8e unless overridden."""
    counter = {"n": 0}

    def _make(
        items,
        country: str = "FR",
        postal_code: str = "75008",
        latitude: Optional[float] = 48.8738,
        longitude: Optional[float] = 2.2950,
        **kwargs,
    ) -> RoutingOrder:
        counter["n"] += 1
        return RoutingOrder(
            id=kwargs.pop("id", f"order-{counter['n']}"),
            org_id=kwargs.pop("org_id", ORG_ID),
            items=[
                item if isinstance(item, OrderItem) else OrderItem(sku=item[0], quantity=item[1])
                for item in items
            ],
            delivery_address=Location(
                country=country,
                postal_code=postal_code,
                latitude=latitude,
                longitude=longitude,
            ),
            **kwargs,
        )

    return _make


@pytest.fixture
def stock_rows() -> Callable[..., List[StockRow]]:
    """stock_rows({PARIS: {"SKU-A": 5}}) -> StockRow list."""
    def _rows(by_warehouse):
        return [
            StockRow(sku=sku, warehouse_id=warehouse_id, quantity=qty)
            for warehouse_id, by_sku in by_warehouse.items()
            for sku, qty in by_sku.items()
        ]
    return _rows


@pytest.fixture
def data_source(warehouses) -> InMemoryRoutingDataSource:
    return InMemoryRoutingDataSource(
        warehouses=warehouses,
        configs={ORG_ID: RoutingConfig(default_strategy="closest_full_stock")},
    )


@pytest.fixture
def routing_service(data_source) -> RoutingService:
    return RoutingService(
        data_source,
        cache=CacheService(InMemoryCache()),
        distance_estimator=DistanceEstimator(DistanceCache(1000)),
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite database file."""
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'routing.db'}")
    await init_db(engine)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()
