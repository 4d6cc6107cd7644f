"""
Routing data sources.

The routing core reads configuration, warehouses, stock and rules and
writes decisions only through RoutingDataSource. SQLRoutingDataSource
opens one session per call, so concurrent routings never share a
session.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from fulfillment_router.database import get_db_session
from fulfillment_router.models.routing import (
    InventoryStock,
    OrganizationRoutingSettings,
    RoutingDecisionRecord,
    RoutingRule,
    Warehouse,
)
from fulfillment_router.schemas.routing import (
    Location,
    RoutingConfig,
    RoutingDecision,
    RoutingRuleInfo,
    StockRow,
    WarehouseInfo,
    WarehouseZoneInfo,
)
from fulfillment_router.services.routing.rules import normalize_conditions

logger = logging.getLogger(__name__)


class RoutingDataSource(ABC):
    """Collaborator interface consumed by the routing service."""

    @abstractmethod
    async def get_routing_config(self, org_id: str) -> Optional[RoutingConfig]:
        """Organization routing config, or None when the org has none."""
        pass

    @abstractmethod
    async def get_active_warehouses(self, org_id: str) -> List[WarehouseInfo]:
        pass

    @abstractmethod
    async def get_stock_rows(self, org_id: str, skus: Sequence[str]) -> List[StockRow]:
        """Available stock rows for the SKUs; several rows per (sku, warehouse) allowed."""
        pass

    @abstractmethod
    async def get_routing_rules(self, org_id: str) -> List[RoutingRuleInfo]:
        pass

    @abstractmethod
    async def save_routing_decision(self, decision: RoutingDecision) -> None:
        pass

    @abstractmethod
    async def get_routing_decisions(self, order_id: str) -> List[RoutingDecision]:
        """Decisions for an order, newest first."""
        pass


class InMemoryRoutingDataSource(RoutingDataSource):
    """Dictionary-backed data source for tests and local runs."""

    def __init__(
        self,
        warehouses: Optional[List[WarehouseInfo]] = None,
        stock: Optional[List[StockRow]] = None,
        rules: Optional[List[RoutingRuleInfo]] = None,
        configs: Optional[Dict[str, RoutingConfig]] = None,
    ):
        self.warehouses: List[WarehouseInfo] = list(warehouses or [])
        self.stock: List[StockRow] = list(stock or [])
        self.rules: List[RoutingRuleInfo] = list(rules or [])
        self.configs: Dict[str, RoutingConfig] = dict(configs or {})
        self.decisions: List[RoutingDecision] = []
        self.config_reads = 0

    async def get_routing_config(self, org_id: str) -> Optional[RoutingConfig]:
        self.config_reads += 1
        return self.configs.get(org_id)

    async def get_active_warehouses(self, org_id: str) -> List[WarehouseInfo]:
        return [w for w in self.warehouses if w.org_id == org_id and w.is_active]

    async def get_stock_rows(self, org_id: str, skus: Sequence[str]) -> List[StockRow]:
        warehouse_ids = {w.id for w in self.warehouses if w.org_id == org_id}
        wanted = set(skus)
        return [
            row for row in self.stock
            if row.sku in wanted and row.warehouse_id in warehouse_ids
        ]

    async def get_routing_rules(self, org_id: str) -> List[RoutingRuleInfo]:
        return [r for r in self.rules if r.org_id == org_id and r.is_active]

    async def save_routing_decision(self, decision: RoutingDecision) -> None:
        self.decisions.append(decision.model_copy(deep=True))

    async def get_routing_decisions(self, order_id: str) -> List[RoutingDecision]:
        return [d for d in reversed(self.decisions) if d.order_id == order_id]


def warehouse_to_info(warehouse: Warehouse) -> WarehouseInfo:
    return WarehouseInfo(
        id=str(warehouse.id),
        org_id=warehouse.org_id,
        code=warehouse.code,
        name=warehouse.name,
        location=Location(
            country=warehouse.country,
            postal_code=warehouse.postal_code,
            city=warehouse.city,
            latitude=warehouse.latitude,
            longitude=warehouse.longitude,
        ),
        priority=warehouse.priority if warehouse.priority is not None else 50,
        daily_capacity=warehouse.daily_capacity if warehouse.daily_capacity is not None else 100,
        current_day_orders=warehouse.current_day_orders or 0,
        is_active=warehouse.is_active,
        carriers=warehouse.carriers or [],
        zones=[WarehouseZoneInfo.model_validate(zone) for zone in warehouse.zones],
    )


def rule_to_info(rule: RoutingRule) -> RoutingRuleInfo:
    return RoutingRuleInfo(
        id=str(rule.id),
        org_id=rule.org_id,
        name=rule.name,
        priority=rule.priority,
        conditions=normalize_conditions(rule.conditions),
        target_warehouse_id=str(rule.target_warehouse_id) if rule.target_warehouse_id else None,
        strategy=rule.strategy,
        is_active=rule.is_active,
    )


def record_to_decision(record: RoutingDecisionRecord) -> RoutingDecision:
    return RoutingDecision(
        id=str(record.id),
        order_id=record.order_id,
        org_id=record.org_id,
        type=record.decision_type,
        shipments=record.shipments,
        unallocated=record.unallocated,
        shortfall=record.shortfall,
        strategy=record.strategy,
        routing_rule_name=record.routing_rule_name,
        warehouse_scores=record.warehouse_scores,
        total_shipping_cost=record.total_shipping_cost or 0.0,
        processing_time_ms=record.processing_time_ms or 0,
        created_at=record.created_at,
    )


class SQLRoutingDataSource(RoutingDataSource):
    """Async SQLAlchemy data source over the routing tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_routing_config(self, org_id: str) -> Optional[RoutingConfig]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(OrganizationRoutingSettings.routing_config).where(
                    OrganizationRoutingSettings.org_id == org_id
                )
            )
            raw = result.scalar_one_or_none()

        if raw is None:
            return None
        return RoutingConfig.model_validate(raw)

    async def get_active_warehouses(self, org_id: str) -> List[WarehouseInfo]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Warehouse)
                .options(selectinload(Warehouse.zones))
                .where(
                    Warehouse.org_id == org_id,
                    Warehouse.is_active == True,
                )
                .order_by(Warehouse.code)
            )
            warehouses = list(result.scalars().all())

        return [warehouse_to_info(w) for w in warehouses]

    async def get_stock_rows(self, org_id: str, skus: Sequence[str]) -> List[StockRow]:
        if not skus:
            return []

        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    InventoryStock.sku,
                    InventoryStock.warehouse_id,
                    func.sum(InventoryStock.quantity - InventoryStock.reserved),
                )
                .where(
                    InventoryStock.org_id == org_id,
                    InventoryStock.sku.in_(list(skus)),
                )
                .group_by(InventoryStock.sku, InventoryStock.warehouse_id)
            )
            rows = result.all()

        return [
            StockRow(sku=sku, warehouse_id=str(warehouse_id), quantity=int(qty or 0))
            for sku, warehouse_id, qty in rows
        ]

    async def get_routing_rules(self, org_id: str) -> List[RoutingRuleInfo]:
        now = datetime.now(timezone.utc)

        async with self.session_factory() as session:
            result = await session.execute(
                select(RoutingRule)
                .where(
                    RoutingRule.org_id == org_id,
                    RoutingRule.is_active == True,
                    or_(RoutingRule.valid_from.is_(None), RoutingRule.valid_from <= now),
                    or_(RoutingRule.valid_until.is_(None), RoutingRule.valid_until >= now),
                )
                .order_by(RoutingRule.priority.desc())
            )
            rules = list(result.scalars().all())

        return [rule_to_info(r) for r in rules]

    async def save_routing_decision(self, decision: RoutingDecision) -> None:
        data = decision.model_dump(mode="json")
        record = RoutingDecisionRecord(
            id=uuid.UUID(decision.id),
            org_id=decision.org_id,
            order_id=decision.order_id,
            decision_type=decision.type.value,
            strategy=decision.strategy,
            routing_rule_name=decision.routing_rule_name,
            shipments=data["shipments"],
            unallocated=data["unallocated"],
            shortfall=data["shortfall"],
            warehouse_scores=data["warehouse_scores"],
            total_shipping_cost=decision.total_shipping_cost,
            processing_time_ms=decision.processing_time_ms,
            created_at=decision.created_at,
        )

        async with get_db_session(self.session_factory) as session:
            session.add(record)

        logger.debug(f"Saved routing decision {decision.id} for order {decision.order_id}")

    async def get_routing_decisions(self, order_id: str) -> List[RoutingDecision]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RoutingDecisionRecord)
                .where(RoutingDecisionRecord.order_id == order_id)
                .order_by(RoutingDecisionRecord.created_at.desc())
            )
            records = list(result.scalars().all())

        return [record_to_decision(r) for r in records]
