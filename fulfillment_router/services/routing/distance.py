"""
Distance Estimator.

Great-circle distance when both ends carry coordinates, otherwise a
coarse estimate from country and postal prefix. Only relative ranking
matters to the scorer, so lookups never fail.
"""
import math
import threading
from collections import OrderedDict
from typing import Dict, Hashable, Optional, Tuple

from fulfillment_router.config import settings
from fulfillment_router.schemas.routing import Location, WarehouseInfo

EARTH_RADIUS_KM = 6371.0

SAME_PREFIX_DISTANCE_KM = 50.0
DOMESTIC_FALLBACK_DISTANCE_KM = 300.0
INTERNATIONAL_DISTANCE_KM = 1000.0

# Regional centroids keyed by 2-character postal prefix (French departments)
REGION_CENTROIDS: Dict[str, Tuple[float, float]] = {
    "75": (48.86, 2.35),   # Paris
    "69": (45.76, 4.84),   # Lyon
    "13": (43.30, 5.37),   # Marseille
    "33": (44.84, -0.58),  # Bordeaux
    "31": (43.60, 1.44),   # Toulouse
    "59": (50.63, 3.06),   # Lille
    "67": (48.57, 7.75),   # Strasbourg
    "44": (47.22, -1.55),  # Nantes
}


def haversine_distance(
    lat1: float, lon1: float,
    lat2: float, lon2: float
) -> float:
    """Calculate distance between two points in km."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    # Rounding can push a slightly above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def estimate_from_postal_codes(origin: Location, destination: Location) -> float:
    """Coarse distance from country and postal prefix."""
    if origin.country != destination.country:
        return INTERNATIONAL_DISTANCE_KM

    origin_prefix = origin.postal_prefix
    destination_prefix = destination.postal_prefix

    # Two missing prefixes in one country count as the same area
    if origin_prefix == destination_prefix:
        return SAME_PREFIX_DISTANCE_KM

    origin_centroid = REGION_CENTROIDS.get(origin_prefix or "")
    destination_centroid = REGION_CENTROIDS.get(destination_prefix or "")
    if origin_centroid is None or destination_centroid is None:
        return DOMESTIC_FALLBACK_DISTANCE_KM

    return haversine_distance(*origin_centroid, *destination_centroid)


def estimate_distance(origin: Location, destination: Location) -> float:
    """Distance in km between two locations, exact when possible."""
    if origin.has_coordinates and destination.has_coordinates:
        distance = haversine_distance(
            origin.latitude, origin.longitude,
            destination.latitude, destination.longitude,
        )
        if math.isfinite(distance):
            return distance

    return estimate_from_postal_codes(origin, destination)


class DistanceCache:
    """
    Bounded LRU memo for distance lookups.

    Values are derived, so concurrent writers may overwrite each other
    (last write wins).
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries or settings.DISTANCE_CACHE_SIZE
        self._entries: "OrderedDict[Hashable, float]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[float]:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                return self._entries[key]
            self.misses += 1
            return None

    def set(self, key: Hashable, value: float) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _location_key(location: Location) -> Tuple:
    return (
        location.country,
        (location.postal_code or "").strip(),
        location.latitude,
        location.longitude,
    )


class DistanceEstimator:
    """
    Warehouse-to-destination distances memoized across routing calls.

    Both ends' locations are part of the key, so a relocated or newly
    geocoded warehouse never reuses its old distance.
    """

    def __init__(self, cache: Optional[DistanceCache] = None):
        self.cache = cache if cache is not None else DistanceCache()

    @staticmethod
    def cache_key(warehouse: WarehouseInfo, destination: Location) -> Tuple:
        return (warehouse.id, _location_key(warehouse.location), _location_key(destination))

    def distance(self, warehouse: WarehouseInfo, destination: Location) -> float:
        key = self.cache_key(warehouse, destination)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        distance = estimate_distance(warehouse.location, destination)
        self.cache.set(key, distance)
        return distance
