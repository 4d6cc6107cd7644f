"""
Routing Orchestrator.

End-to-end routing pipeline for one order:
1. Load org routing config (cached, defaults when missing)
2. Load active warehouses
3. Build the inventory snapshot for the order's SKUs
4. Evaluate organization rules
5. Resolve the strategy (order > rule > org default)
6. Score warehouses and plan fulfillment
7. Persist the decision (skipped on dry run)

Batch mode runs independent pipelines concurrently; one order's failure
never aborts its siblings.
"""
import asyncio
import logging
import time
from typing import List, Optional

from fulfillment_router.config import Settings, settings as default_settings
from fulfillment_router.schemas.routing import (
    BatchRoutingItem,
    BatchRoutingResult,
    RoutingConfig,
    RoutingDecision,
    RoutingOrder,
    RuleMatch,
    WarehouseInfo,
    WarehouseScore,
)
from fulfillment_router.services.cache_service import CacheService
from fulfillment_router.services.routing.data_source import RoutingDataSource
from fulfillment_router.services.routing.distance import DistanceCache, DistanceEstimator
from fulfillment_router.services.routing.exceptions import NoWarehousesAvailable
from fulfillment_router.services.routing.inventory import InventoryMatrixBuilder
from fulfillment_router.services.routing.planner import FulfillmentPlanner
from fulfillment_router.services.routing.rules import RulesEngine
from fulfillment_router.services.routing.scoring import WarehouseScorer
from fulfillment_router.services.routing.strategies import resolve_strategy

logger = logging.getLogger(__name__)


class RoutingService:
    """
    Routes orders to warehouses.

    Scoring and planning are pure; all I/O goes through the data source
    and the optional config cache.
    """

    def __init__(
        self,
        data_source: RoutingDataSource,
        cache: Optional[CacheService] = None,
        distance_estimator: Optional[DistanceEstimator] = None,
        settings: Optional[Settings] = None,
    ):
        self.data_source = data_source
        self.cache = cache
        self.settings = settings or default_settings
        self.distance_estimator = distance_estimator or DistanceEstimator(
            DistanceCache(self.settings.DISTANCE_CACHE_SIZE)
        )
        self.inventory_builder = InventoryMatrixBuilder(data_source)
        self.scorer = WarehouseScorer(self.distance_estimator)
        self.rules_engine = RulesEngine()
        self.planner = FulfillmentPlanner()

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    async def get_routing_config(self, org_id: str) -> RoutingConfig:
        """Org routing config; falls back to settings defaults when the org has none."""
        if self.cache:
            cached = await self.cache.get_routing_config(org_id)
            if cached is not None:
                return RoutingConfig.model_validate(cached)

        config = await self.data_source.get_routing_config(org_id)
        if config is None:
            logger.warning(f"No routing config for org {org_id}, using defaults")
            config = RoutingConfig()

        if self.cache:
            await self.cache.set_routing_config(
                org_id,
                config.model_dump(mode="json"),
                ttl=self.settings.ROUTING_CONFIG_CACHE_TTL,
            )
        return config

    async def invalidate_routing_config(self, org_id: str) -> None:
        if self.cache:
            await self.cache.invalidate_routing_config(org_id)

    # ========================================================================
    # SINGLE ORDER
    # ========================================================================

    async def route_order(
        self,
        order: RoutingOrder,
        dry_run: bool = False,
    ) -> RoutingDecision:
        """
        Route one order.

        Raises:
            NoWarehousesAvailable: no active or eligible warehouse
            InsufficientStockError: no plan possible without split/backorder
        """
        start_time = time.perf_counter()

        config = await self.get_routing_config(order.org_id)

        warehouses = [
            w for w in await self.data_source.get_active_warehouses(order.org_id)
            if w.is_active
        ]
        if not warehouses:
            raise NoWarehousesAvailable(
                f"No active warehouses for org {order.org_id}",
                order_id=order.id,
            )

        inventory = await self.inventory_builder.build(
            order.org_id, [item.sku for item in order.items]
        )

        rules = await self.data_source.get_routing_rules(order.org_id)
        rule_match = self.rules_engine.evaluate(order, rules)

        strategy_id = order.strategy or (rule_match.strategy if rule_match else None)
        strategy = resolve_strategy(strategy_id, config.default_strategy)

        scores = self.scorer.score_all(order, warehouses, inventory, strategy, config)
        pinned_warehouse_id = self._resolve_pin(order, rule_match, warehouses, scores)

        plan = self.planner.plan(
            order,
            scores,
            inventory,
            strategy,
            config,
            pinned_warehouse_id=pinned_warehouse_id,
        )

        decision = RoutingDecision(
            order_id=order.id,
            org_id=order.org_id,
            type=plan.type,
            shipments=plan.shipments,
            unallocated=plan.unallocated,
            shortfall=plan.shortfall,
            strategy=strategy.id.value,
            routing_rule_name=rule_match.rule_name if rule_match else None,
            warehouse_scores=scores,
            total_shipping_cost=plan.total_shipping_cost,
            processing_time_ms=int((time.perf_counter() - start_time) * 1000),
            is_dry_run=dry_run,
        )

        if not dry_run:
            await self.data_source.save_routing_decision(decision)

        logger.info(
            f"Routed order {order.id}: {decision.type.value} via "
            f"{', '.join(s.warehouse_code for s in decision.shipments)} "
            f"(strategy={decision.strategy}, rule={decision.routing_rule_name}, "
            f"dry_run={dry_run})"
        )
        return decision

    @staticmethod
    def _resolve_pin(
        order: RoutingOrder,
        rule_match: Optional[RuleMatch],
        warehouses: List[WarehouseInfo],
        scores: List[WarehouseScore],
    ) -> Optional[str]:
        """Pinned warehouse id, or None if the pin is unusable for this order."""
        if not rule_match or not rule_match.target_warehouse_id:
            return None

        target = rule_match.target_warehouse_id
        if target not in {w.id for w in warehouses}:
            logger.warning(
                f"Rule '{rule_match.rule_name}' pins warehouse {target} which is not active, "
                f"scoring order {order.id} normally"
            )
            return None

        score = next(s for s in scores if s.warehouse_id == target)
        if not score.eligible:
            logger.warning(
                f"Rule '{rule_match.rule_name}' pins warehouse {score.warehouse_code} "
                f"which is {score.disqualified_reason} for order {order.id}, scoring normally"
            )
            return None

        return target

    # ========================================================================
    # BATCH
    # ========================================================================

    async def route_orders(
        self,
        orders: List[RoutingOrder],
        concurrency: Optional[int] = None,
        dry_run: bool = False,
    ) -> BatchRoutingResult:
        """Route orders independently with bounded concurrency."""
        semaphore = asyncio.Semaphore(concurrency or self.settings.ROUTING_BATCH_CONCURRENCY)

        async def route_one(order: RoutingOrder) -> BatchRoutingItem:
            async with semaphore:
                try:
                    decision = await self.route_order(order, dry_run=dry_run)
                    return BatchRoutingItem(order_id=order.id, status="routed", decision=decision)
                except Exception as e:
                    logger.error(f"Batch routing failed for order {order.id}: {e}")
                    return BatchRoutingItem(
                        order_id=order.id,
                        status="failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )

        results = await asyncio.gather(*(route_one(order) for order in orders))

        routed = sum(1 for r in results if r.status == "routed")
        summary = BatchRoutingResult(
            total=len(results),
            routed=routed,
            failed=len(results) - routed,
            results=list(results),
        )
        logger.info(
            f"Batch routing complete: {summary.routed}/{summary.total} routed, "
            f"{summary.failed} failed"
        )
        return summary

    # ========================================================================
    # HISTORY
    # ========================================================================

    async def get_decision_history(self, order_id: str) -> List[RoutingDecision]:
        """All decisions recorded for an order, newest first."""
        return await self.data_source.get_routing_decisions(order_id)
