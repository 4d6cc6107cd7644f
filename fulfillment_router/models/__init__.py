from fulfillment_router.models.routing import (
    Warehouse,
    WarehouseZone,
    InventoryStock,
    RoutingRule,
    OrganizationRoutingSettings,
    RoutingDecisionRecord,
)

__all__ = [
    "Warehouse",
    "WarehouseZone",
    "InventoryStock",
    "RoutingRule",
    "OrganizationRoutingSettings",
    "RoutingDecisionRecord",
]
