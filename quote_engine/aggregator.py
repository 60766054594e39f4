"""
Line-Item Aggregator.

Collapses the raw CAD items of each environment into one line per
(description, category, unit price). The unit price is rounded to 4 places
for the key only, so 10.00001 and 10.0 land in the same group while two
materials sharing a name but priced differently stay apart.
"""

import time
from typing import Dict, List, Optional, Tuple

from .schemas import AggregatedItem, EnvironmentQuoteLine, RawLineItem

SORT_KEYS = ("quantity", "description", "total_price")
UNIT_PRICE_KEY_DECIMALS = 4


def group_key(item) -> Tuple[str, str, float]:
    return (item.description, item.category, round(item.unit_price, UNIT_PRICE_KEY_DECIMALS))


def group_items(raw_items: List[RawLineItem]) -> List[AggregatedItem]:
    """Group one environment's raw items. Output keeps first-seen order."""
    groups: Dict[tuple, AggregatedItem] = {}
    for item in raw_items:
        key = group_key(item)
        existing = groups.get(key)
        if existing is None:
            groups[key] = AggregatedItem(
                description=item.description,
                category=item.category,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
            )
        else:
            existing.quantity += item.quantity
            existing.total_price += item.total_price
    return list(groups.values())


def aggregate_environments(
    raw_items: List[RawLineItem],
    id_seed: Optional[int] = None,
) -> List[EnvironmentQuoteLine]:
    """
    One EnvironmentQuoteLine per distinct environment name.

    sale_value starts equal to cost_total; markup is the pricing engine's job.
    """
    by_environment: Dict[str, List[RawLineItem]] = {}
    for item in raw_items:
        by_environment.setdefault(item.environment_name, []).append(item)

    seed = id_seed if id_seed is not None else int(time.time() * 1000)
    lines = []
    for index, (environment, items) in enumerate(by_environment.items()):
        detail = group_items(items)
        # Summed from the groups, not the raw list, so it matches what is displayed
        cost_total = sum(group.total_price for group in detail)
        lines.append(EnvironmentQuoteLine(
            id=seed + index,
            environment_name=environment,
            description=f"{len(detail)} items (grouped)",
            cost_total=cost_total,
            sale_value=cost_total,
            detail=detail,
            selected=True,
        ))
    return lines


def sort_detail(
    detail: List[AggregatedItem],
    key: str = "description",
    direction: str = "asc",
) -> List[AggregatedItem]:
    """Display ordering for an environment's detail. Returns a new list."""
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}")

    def sort_value(item):
        value = getattr(item, key)
        return value.lower() if isinstance(value, str) else value

    return sorted(detail, key=sort_value, reverse=(direction == "desc"))


def next_sort(current: Tuple[str, str], key: str) -> Tuple[str, str]:
    """Selecting the active key again flips direction; a new key starts ascending."""
    current_key, current_direction = current
    if current_key == key and current_direction == "asc":
        return (key, "desc")
    return (key, "asc")
