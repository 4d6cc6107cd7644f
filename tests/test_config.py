from fulfillment_router.config import Settings
from fulfillment_router.database import normalize_database_url
from fulfillment_router.schemas.routing import DeliveryType, RoutingConfig


def test_default_strategy_is_normalized():
    s = Settings(ROUTING_DEFAULT_STRATEGY=" LOWEST_COST ")
    assert s.ROUTING_DEFAULT_STRATEGY == "lowest_cost"


def test_routing_defaults():
    s = Settings()
    assert s.ROUTING_MAX_SHIPPING_COST == 30.0
    assert s.ROUTING_CONFIG_CACHE_TTL == 3600
    assert s.ROUTING_ALLOW_SPLIT is False
    assert s.ROUTING_ALLOW_BACKORDER is False


def test_routing_config_ignores_unknown_keys():
    config = RoutingConfig.model_validate({"allow_split": True, "legacy_flag": 1})
    assert config.allow_split
    assert config.delivery_window(DeliveryType.EXPRESS) == (1, 3)
    assert config.delivery_window(DeliveryType.STANDARD) == (2, 7)


def test_postgres_urls_use_psycopg():
    assert normalize_database_url("postgresql://u:p@db/routing") == "postgresql+psycopg://u:p@db/routing"
    assert normalize_database_url("postgresql+asyncpg://u:p@db/routing") == "postgresql+psycopg://u:p@db/routing"
    assert normalize_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"
