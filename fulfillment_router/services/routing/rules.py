"""
Rules Engine.

Organization rules pin a warehouse and/or a strategy for orders matching
every one of their conditions. Rules are evaluated highest priority
first; the first match wins.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from fulfillment_router.schemas.routing import (
    RoutingOrder,
    RoutingRuleInfo,
    RuleCondition,
    RuleField,
    RuleMatch,
    RuleOperator,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def get_order_field(order: RoutingOrder, field: str) -> Any:
    """Resolve a rule field against the order; unknown fields are missing."""
    address = order.delivery_address
    field_map: Dict[str, Callable[[], Any]] = {
        RuleField.CARRIER.value: lambda: order.carrier,
        RuleField.COUNTRY.value: lambda: address.country,
        RuleField.POSTAL_CODE.value: lambda: address.postal_code,
        RuleField.TOTAL_VALUE.value: lambda: order.total_value,
        RuleField.ITEM_COUNT.value: lambda: len(order.items),
        RuleField.PRIORITY.value: lambda: order.priority,
        RuleField.CUSTOMER_TYPE.value: lambda: order.customer_type,
        RuleField.DELIVERY_TYPE.value: lambda: order.delivery_type.value,
    }
    getter = field_map.get(field)
    if getter is None:
        return _MISSING
    value = getter()
    return _MISSING if value is None else value


def evaluate_condition(value: Any, operator: str, target: Any) -> bool:
    """Pure predicate; type mismatches and missing values are False."""
    if value is _MISSING:
        return False

    try:
        if operator == RuleOperator.EQUALS:
            return value == target
        if operator == RuleOperator.NOT_EQUALS:
            return value != target
        if operator == RuleOperator.IN:
            return isinstance(target, (list, tuple, set)) and value in target
        if operator == RuleOperator.NOT_IN:
            return isinstance(target, (list, tuple, set)) and value not in target
        if operator == RuleOperator.STARTS_WITH:
            return isinstance(target, str) and str(value).startswith(target)
        if operator == RuleOperator.GREATER_THAN:
            return value > target
        if operator == RuleOperator.LESS_THAN:
            return value < target
        if operator == RuleOperator.BETWEEN:
            if not isinstance(target, (list, tuple)) or len(target) != 2:
                return False
            low, high = target
            return low <= value <= high
    except TypeError:
        return False

    return False


def normalize_conditions(raw: Union[None, List[Any], Dict[str, Any]]) -> List[RuleCondition]:
    """
    Accept conditions stored either as a list of
    {field, operator, target} objects or as a mapping
    field -> {operator, target}.
    """
    if not raw:
        return []
    if isinstance(raw, dict):
        return [
            RuleCondition(field=field, operator=cond.get("operator", ""), target=cond.get("target"))
            for field, cond in raw.items()
            if isinstance(cond, dict)
        ]
    return [
        c if isinstance(c, RuleCondition) else RuleCondition.model_validate(c)
        for c in raw
    ]


class RulesEngine:
    """Finds the first matching organization rule for an order."""

    def matches(self, order: RoutingOrder, rule: RoutingRuleInfo) -> bool:
        for condition in rule.conditions:
            value = get_order_field(order, condition.field)
            if not evaluate_condition(value, condition.operator, condition.target):
                return False
        return True

    def evaluate(
        self,
        order: RoutingOrder,
        rules: Iterable[RoutingRuleInfo],
    ) -> Optional[RuleMatch]:
        active = [r for r in rules if r.is_active]
        # Stable sort keeps stored order among equal priorities
        active.sort(key=lambda r: r.priority, reverse=True)

        for rule in active:
            if self.matches(order, rule):
                logger.debug(f"Order {order.id} matched routing rule '{rule.name}'")
                return RuleMatch(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    target_warehouse_id=rule.target_warehouse_id,
                    strategy=rule.strategy,
                )

        return None
