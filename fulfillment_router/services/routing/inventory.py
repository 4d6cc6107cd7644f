"""
Inventory Matrix Builder.

Builds a point-in-time SKU x warehouse availability snapshot for one
routing call. No locking or reservation happens here; concurrent
routings may count the same units.
"""
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, TYPE_CHECKING

from fulfillment_router.schemas.routing import OrderItem, ShortfallItem, StockRow

if TYPE_CHECKING:
    from fulfillment_router.services.routing.data_source import RoutingDataSource


class InventoryMatrix:
    """Read-only mapping sku -> warehouse_id -> available quantity."""

    def __init__(self, quantities: Mapping[str, Mapping[str, int]]):
        self._matrix: Mapping[str, Mapping[str, int]] = MappingProxyType({
            sku: MappingProxyType({wh: max(0, int(qty)) for wh, qty in by_warehouse.items()})
            for sku, by_warehouse in quantities.items()
        })

    @classmethod
    def from_rows(cls, rows: Iterable[StockRow]) -> "InventoryMatrix":
        """Aggregate stock rows per (sku, warehouse)."""
        totals: Dict[str, Dict[str, int]] = {}
        for row in rows:
            by_warehouse = totals.setdefault(row.sku, {})
            by_warehouse[row.warehouse_id] = by_warehouse.get(row.warehouse_id, 0) + row.quantity
        return cls(totals)

    def available(self, sku: str, warehouse_id: str) -> int:
        """Missing pairs are zero."""
        return self._matrix.get(sku, {}).get(warehouse_id, 0)

    def total_available(self, sku: str) -> int:
        return sum(self._matrix.get(sku, {}).values())

    def covers(self, warehouse_id: str, items: Iterable[OrderItem]) -> bool:
        return all(self.available(item.sku, warehouse_id) >= item.quantity for item in items)

    def shortfall(self, warehouse_id: str, items: Iterable[OrderItem]) -> List[ShortfallItem]:
        missing = []
        for item in items:
            available = self.available(item.sku, warehouse_id)
            if available < item.quantity:
                missing.append(ShortfallItem(
                    sku=item.sku,
                    requested=item.quantity,
                    available=available,
                    shortage=item.quantity - available,
                ))
        return missing

    def network_shortfall(
        self,
        warehouse_ids: Iterable[str],
        items: Iterable[OrderItem],
    ) -> List[ShortfallItem]:
        """Per-SKU shortfall against the combined stock of the given warehouses."""
        warehouse_ids = list(warehouse_ids)
        missing = []
        for item in items:
            available = sum(self.available(item.sku, w) for w in warehouse_ids)
            if available < item.quantity:
                missing.append(ShortfallItem(
                    sku=item.sku,
                    requested=item.quantity,
                    available=available,
                    shortage=item.quantity - available,
                ))
        return missing

    def skus(self) -> List[str]:
        return list(self._matrix.keys())

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {sku: dict(by_warehouse) for sku, by_warehouse in self._matrix.items()}


class InventoryMatrixBuilder:
    """Builds a fresh InventoryMatrix per routing call."""

    def __init__(self, data_source: "RoutingDataSource"):
        self.data_source = data_source

    async def build(self, org_id: str, skus: Iterable[str]) -> InventoryMatrix:
        sku_list = sorted(set(skus))
        if not sku_list:
            return InventoryMatrix({})
        rows = await self.data_source.get_stock_rows(org_id, sku_list)
        return InventoryMatrix.from_rows(row for row in rows if row.sku in sku_list)
