"""
Order Routing Models.

Tables read by the routing engine (owned by other services):
1. warehouses / warehouse_zones - Fulfillment locations and their geographic bindings
2. inventory_stock - Per-SKU stock records per warehouse
3. routing_rules - Organization-defined conditional overrides
4. organization_routing_settings - Per-organization routing configuration

Table written by the routing engine:
5. routing_decisions - Append-only audit trail of routing decisions
"""
import uuid
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Float
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fulfillment_router.database import Base
from fulfillment_router.db_types import JSONType, UUIDType


class Warehouse(Base):
    """
    Fulfillment location as seen by the routing engine.

    Capacity counters are maintained by the order pipeline; the routing
    engine only reads them.
    """
    __tablename__ = "warehouses"
    __table_args__ = (
        UniqueConstraint("org_id", "code", name="uq_warehouse_org_code"),
        Index("ix_warehouse_org_active", "org_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Address
    address_line1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[str] = mapped_column(String(2), nullable=False, default="FR")

    # Geo coordinates
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Routing settings
    priority: Mapped[int] = mapped_column(
        Integer,
        default=50,
        comment="0-100, higher = preferred by warehouse_priority strategy"
    )
    daily_capacity: Mapped[int] = mapped_column(
        Integer,
        default=100,
        comment="Max orders per day"
    )
    current_day_orders: Mapped[int] = mapped_column(
        Integer,
        default=0,
        comment="Orders committed today (reset daily)"
    )
    carriers: Mapped[Optional[list]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Carrier codes available at this warehouse"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    zones: Mapped[List["WarehouseZone"]] = relationship(
        "WarehouseZone",
        back_populates="warehouse",
        cascade="all, delete-orphan",
    )


class WarehouseZone(Base):
    """
    Geographic binding of a warehouse.

    A zone matches a destination by country, by 2-character postal
    prefix, or by bounding box; any populated criterion may match.
    """
    __tablename__ = "warehouse_zones"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("warehouses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    postal_prefix: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    latitude_min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    latitude_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude_min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    warehouse: Mapped["Warehouse"] = relationship("Warehouse", back_populates="zones")


class InventoryStock(Base):
    """Stock record for one SKU at one warehouse location."""
    __tablename__ = "inventory_stock"
    __table_args__ = (
        Index("ix_inventory_stock_org_sku", "org_id", "sku"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("warehouses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Bin/location code; several records per (sku, warehouse) are allowed"
    )

    quantity: Mapped[int] = mapped_column(Integer, default=0)
    reserved: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )


class RoutingRule(Base):
    """
    Organization-defined routing override.

    Rules are evaluated in priority order (higher = evaluated first).
    The first rule whose conditions all match pins its target
    warehouse and/or strategy.
    """
    __tablename__ = "routing_rules"
    __table_args__ = (
        Index("ix_routing_rule_org_priority", "org_id", "priority", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # [{"field": "country", "operator": "equals", "target": "DE"}, ...]
    conditions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    target_warehouse_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("warehouses.id", ondelete="SET NULL"),
        nullable=True
    )
    strategy: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="closest_full_stock, lowest_cost, fastest_delivery, split_allowed, ..."
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )


class OrganizationRoutingSettings(Base):
    """Per-organization routing configuration (JSON blob)."""
    __tablename__ = "organization_routing_settings"

    org_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # {"default_strategy": "lowest_cost", "allow_split": true, ...}
    routing_config: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )


class RoutingDecisionRecord(Base):
    """
    Persisted routing decision.

    One row per routing attempt; re-routing an order inserts a new row.
    """
    __tablename__ = "routing_decisions"
    __table_args__ = (
        Index("ix_routing_decision_order", "order_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    org_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False)

    decision_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="single, split, backorder"
    )
    strategy: Mapped[str] = mapped_column(String(50), nullable=False)
    routing_rule_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    shipments: Mapped[list] = mapped_column(JSONType, nullable=False)
    unallocated: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    shortfall: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    # Score breakdown for every evaluated warehouse
    warehouse_scores: Mapped[list] = mapped_column(JSONType, nullable=False)

    total_shipping_cost: Mapped[float] = mapped_column(Float, default=0.0)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
