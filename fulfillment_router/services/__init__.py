# Services module
from fulfillment_router.services.cache_service import CacheService, get_cache
from fulfillment_router.services.routing import RoutingService

__all__ = [
    "CacheService",
    "get_cache",
    "RoutingService",
]
