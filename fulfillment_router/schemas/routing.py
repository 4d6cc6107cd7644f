"""
Order Routing Schemas.

Pydantic models for routing inputs (orders, warehouses, rules, config)
and outputs (scores, shipments, decisions).
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple, Union

from pydantic import BaseModel, Field, ConfigDict, field_validator

from fulfillment_router.config import settings


# ============================================================================
# ENUMS
# ============================================================================

class RoutingFactor(str, Enum):
    STOCK_AVAILABILITY = "stock_availability"
    DISTANCE = "distance"
    SHIPPING_COST = "shipping_cost"
    DELIVERY_TIME = "delivery_time"
    CAPACITY = "capacity"
    WAREHOUSE_PRIORITY = "warehouse_priority"
    ZONE_ASSIGNMENT = "zone_assignment"
    CAPACITY_BALANCE = "capacity_balance"


class RoutingStrategyId(str, Enum):
    CLOSEST_FULL_STOCK = "closest_full_stock"
    LOWEST_COST = "lowest_cost"
    FASTEST_DELIVERY = "fastest_delivery"
    SPLIT_ALLOWED = "split_allowed"
    WAREHOUSE_PRIORITY = "warehouse_priority"
    LOAD_BALANCE = "load_balance"
    GEOGRAPHIC_ZONE = "geographic_zone"


class DecisionType(str, Enum):
    SINGLE = "single"
    SPLIT = "split"
    BACKORDER = "backorder"


class DeliveryType(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    PICKUP = "pickup"


class RuleOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    STARTS_WITH = "starts_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class RuleField(str, Enum):
    CARRIER = "carrier"
    COUNTRY = "country"
    POSTAL_CODE = "postal_code"
    TOTAL_VALUE = "total_value"
    ITEM_COUNT = "item_count"
    PRIORITY = "priority"
    CUSTOMER_TYPE = "customer_type"
    DELIVERY_TYPE = "delivery_type"


# ============================================================================
# LOCATIONS & WAREHOUSES
# ============================================================================

class Location(BaseModel):
    """Address descriptor used for distance and zone lookups."""
    country: str = Field(..., min_length=2, max_length=2)
    postal_code: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator('country', mode='before')
    @classmethod
    def normalize_country(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def postal_prefix(self) -> Optional[str]:
        if not self.postal_code:
            return None
        return self.postal_code.strip()[:2] or None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class WarehouseZoneInfo(BaseModel):
    """Zone binding; any populated criterion may match a destination."""
    model_config = ConfigDict(from_attributes=True)

    country: Optional[str] = None
    postal_prefix: Optional[str] = None
    latitude_min: Optional[float] = None
    latitude_max: Optional[float] = None
    longitude_min: Optional[float] = None
    longitude_max: Optional[float] = None


class WarehouseInfo(BaseModel):
    """Read-only warehouse view consumed by the scorer."""
    id: str
    org_id: str
    code: str
    name: str = ""
    location: Location
    priority: int = 50
    daily_capacity: int = Field(100, ge=0)
    current_day_orders: int = Field(0, ge=0)
    is_active: bool = True
    carriers: List[str] = []
    zones: List[WarehouseZoneInfo] = []


# ============================================================================
# ORDERS
# ============================================================================

class OrderItem(BaseModel):
    sku: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    weight_kg: Optional[float] = Field(None, ge=0, description="Unit weight, defaults to 0.5 kg")


class RoutingConstraints(BaseModel):
    exclude_warehouses: List[str] = []
    prefer_warehouses: List[str] = []
    max_distance_km: Optional[float] = Field(None, gt=0)


class RoutingOrder(BaseModel):
    """Order payload to route."""
    id: str
    org_id: str
    items: List[OrderItem] = Field(..., min_length=1)
    delivery_address: Location
    carrier: Optional[str] = None
    delivery_type: DeliveryType = DeliveryType.STANDARD
    strategy: Optional[str] = Field(None, description="Explicit strategy, overrides rules and org default")
    total_value: Optional[float] = None
    priority: Optional[Union[int, str]] = None
    customer_type: Optional[str] = None
    constraints: RoutingConstraints = Field(default_factory=RoutingConstraints)

    @field_validator('items')
    @classmethod
    def merge_duplicate_skus(cls, items: List[OrderItem]) -> List[OrderItem]:
        merged: Dict[str, OrderItem] = {}
        for item in items:
            if item.sku in merged:
                existing = merged[item.sku]
                merged[item.sku] = existing.model_copy(
                    update={"quantity": existing.quantity + item.quantity}
                )
            else:
                merged[item.sku] = item
        return list(merged.values())


# ============================================================================
# CONFIGURATION & RULES
# ============================================================================

class RoutingConfig(BaseModel):
    """Per-organization routing configuration."""
    model_config = ConfigDict(extra="ignore")

    default_strategy: str = Field(default_factory=lambda: settings.ROUTING_DEFAULT_STRATEGY)
    allow_split: bool = Field(default_factory=lambda: settings.ROUTING_ALLOW_SPLIT)
    allow_backorder: bool = Field(default_factory=lambda: settings.ROUTING_ALLOW_BACKORDER)
    max_acceptable_shipping_cost: float = Field(
        default_factory=lambda: settings.ROUTING_MAX_SHIPPING_COST, gt=0
    )
    max_split_shipments: Optional[int] = Field(
        default_factory=lambda: settings.ROUTING_MAX_SPLIT_SHIPMENTS, ge=1
    )
    delivery_target_days_standard: int = Field(default_factory=lambda: settings.DELIVERY_TARGET_DAYS_STANDARD)
    delivery_max_days_standard: int = Field(default_factory=lambda: settings.DELIVERY_MAX_DAYS_STANDARD)
    delivery_target_days_express: int = Field(default_factory=lambda: settings.DELIVERY_TARGET_DAYS_EXPRESS)
    delivery_max_days_express: int = Field(default_factory=lambda: settings.DELIVERY_MAX_DAYS_EXPRESS)

    def delivery_window(self, delivery_type: DeliveryType) -> Tuple[int, int]:
        """(target, max) days for the delivery type."""
        if delivery_type == DeliveryType.EXPRESS:
            return self.delivery_target_days_express, self.delivery_max_days_express
        return self.delivery_target_days_standard, self.delivery_max_days_standard


class RuleCondition(BaseModel):
    field: str
    operator: str
    target: Any = None


class RoutingRuleInfo(BaseModel):
    id: str
    org_id: str
    name: str
    priority: int = 0
    conditions: List[RuleCondition] = []
    target_warehouse_id: Optional[str] = None
    strategy: Optional[str] = None
    is_active: bool = True


class RuleMatch(BaseModel):
    rule_id: str
    rule_name: str
    target_warehouse_id: Optional[str] = None
    strategy: Optional[str] = None


class StockRow(BaseModel):
    sku: str
    warehouse_id: str
    quantity: int


# ============================================================================
# SCORES & DECISIONS
# ============================================================================

class ShortfallItem(BaseModel):
    sku: str
    requested: int
    available: int
    shortage: int


class AllocatedItem(BaseModel):
    sku: str
    quantity: int


class ScoreDetails(BaseModel):
    """Per-factor inputs behind a warehouse score."""
    stock_coverage: float = 0.0
    distance_km: float = 0.0
    shipping_cost: float = 0.0
    delivery_days: int = 0
    missing_items: List[ShortfallItem] = []
    zone_match: bool = False
    current_load: float = 0.0


class WarehouseScore(BaseModel):
    """Score breakdown for one warehouse against one order."""
    warehouse_id: str
    warehouse_code: str
    total: float
    scores: Dict[str, float]
    details: ScoreDetails
    can_fulfill_complete: bool = False

    # Constraint outcome: ineligible warehouses never receive shipments
    eligible: bool = True
    disqualified_reason: Optional[str] = None
    preferred: bool = False


class Shipment(BaseModel):
    warehouse_id: str
    warehouse_code: str
    items: List[AllocatedItem]
    score: float
    estimated_shipping_cost: float
    estimated_delivery_days: int
    backordered: List[ShortfallItem] = []


class RoutingDecision(BaseModel):
    """Result of routing one order."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_id: str
    org_id: str
    type: DecisionType
    shipments: List[Shipment]
    unallocated: Optional[List[AllocatedItem]] = None
    shortfall: Optional[List[ShortfallItem]] = None

    strategy: str
    routing_rule_name: Optional[str] = None
    warehouse_scores: List[WarehouseScore] = []

    total_shipping_cost: float = 0.0
    processing_time_ms: int = 0
    is_dry_run: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BatchRoutingItem(BaseModel):
    order_id: str
    status: str  # "routed" or "failed"
    decision: Optional[RoutingDecision] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class BatchRoutingResult(BaseModel):
    total: int
    routed: int
    failed: int
    results: List[BatchRoutingItem]
