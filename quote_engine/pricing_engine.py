"""
Pricing Engine.

Cost -> sale value per environment (markup), selected sale values ->
proposal total (reverse markup for the referral partner), and the
percent/value discount pair against that total.

Pure math. Every method works on copies and returns the new value.
"""

import logging
from typing import List, Optional, Tuple

from .config import PricingConfig
from .exceptions import ConfigurationError
from .schemas import AggregatedItem, EnvironmentQuoteLine

logger = logging.getLogger(__name__)

MANUAL_CATEGORY = "Manual"


def apply_markup(cost_total: float, markup_percent: float) -> float:
    """saleValue = cost × (1 + markup/100)."""
    validate_markup(markup_percent)
    return cost_total * (1 + markup_percent / 100.0)


def validate_markup(markup_percent: float) -> None:
    if markup_percent is None or markup_percent < 0:
        raise ConfigurationError(f"Markup must be zero or positive, got {markup_percent}")


class PricingEngine:
    """
    Pricing for one draft, bound to a configuration snapshot.
    """

    def __init__(self, config: PricingConfig):
        validate_markup(config.markup_percent)
        self.config = config

    # --- Environment lines ---

    def recalculate_line(self, line: EnvironmentQuoteLine) -> EnvironmentQuoteLine:
        """
        Recompute cost from detail and sale value from markup.

        Manual environments have no detail; their typed cost is kept.
        """
        if line.detail:
            cost_total = sum(item.total_price for item in line.detail)
        else:
            cost_total = line.cost_total
        return line.model_copy(update={
            "cost_total": cost_total,
            "sale_value": apply_markup(cost_total, self.config.markup_percent),
        })

    def manual_line(self, environment_name: str, value: float, line_id: int) -> EnvironmentQuoteLine:
        """Environment typed in by the operator, no CAD detail. Value is both cost and sale."""
        if not environment_name or not environment_name.strip():
            raise ConfigurationError("Environment name is required")
        if value is None or value <= 0:
            raise ConfigurationError("Environment value must be positive")
        return EnvironmentQuoteLine(
            id=line_id,
            environment_name=environment_name.strip(),
            description="Manual",
            cost_total=value,
            sale_value=value,
            detail=[],
            selected=True,
        )

    def add_detail_item(
        self,
        line: EnvironmentQuoteLine,
        description: str,
        total_price: float,
        quantity: float = 1.0,
    ) -> EnvironmentQuoteLine:
        if not description:
            raise ConfigurationError("Item description is required")
        if total_price is None or total_price <= 0:
            raise ConfigurationError("Item value must be positive")
        quantity = quantity if quantity and quantity > 0 else 1.0
        item = AggregatedItem(
            description=description,
            category=MANUAL_CATEGORY,
            quantity=quantity,
            unit_price=total_price / quantity,
            total_price=total_price,
        )
        updated = line.model_copy(update={"detail": [*line.detail, item]})
        return self.recalculate_line(updated)

    def remove_detail_item(self, line: EnvironmentQuoteLine, index: int) -> EnvironmentQuoteLine:
        if index < 0 or index >= len(line.detail):
            raise ConfigurationError(f"No detail item at position {index}")
        detail = [item for i, item in enumerate(line.detail) if i != index]
        # Last item gone: the environment is worth nothing until re-priced
        updated = line.model_copy(update={"detail": detail, "cost_total": 0.0 if not detail else line.cost_total})
        return self.recalculate_line(updated)

    @staticmethod
    def override_sale_value(line: EnvironmentQuoteLine, sale_value: float) -> EnvironmentQuoteLine:
        if sale_value is None or sale_value < 0:
            raise ConfigurationError("Sale value cannot be negative")
        return line.model_copy(update={"sale_value": sale_value})

    @staticmethod
    def rename_line(line: EnvironmentQuoteLine, environment_name: str) -> EnvironmentQuoteLine:
        if not environment_name or not environment_name.strip():
            raise ConfigurationError("Environment name is required")
        return line.model_copy(update={"environment_name": environment_name.strip()})

    @staticmethod
    def toggle_selection(line: EnvironmentQuoteLine) -> EnvironmentQuoteLine:
        return line.model_copy(update={"selected": not line.selected})

    # --- Proposal ---

    @staticmethod
    def selected_base(lines: List[EnvironmentQuoteLine]) -> float:
        """Naive sum of selected sale values, before the referral uplift."""
        return sum(line.sale_value for line in lines if line.selected)

    def validate_referral(self, referral_percent: Optional[float]) -> float:
        r = referral_percent or 0.0
        if r < 0:
            raise ConfigurationError("Referral percent cannot be negative")
        if r >= 100 or r > self.config.max_referral_percent:
            raise ConfigurationError(
                f"Referral percent {r} is above the allowed ceiling "
                f"of {self.config.max_referral_percent}%"
            )
        return r

    def referral_uplift(self, base: float, referral_percent: Optional[float]) -> Tuple[float, float]:
        """
        Reverse markup: the partner's cut comes out of the top-line price
        and the store still nets `base`.

        Returns (proposal_total, referral_payout).
        """
        r = self.validate_referral(referral_percent)
        if r == 0:
            return base, 0.0
        proposal_total = base / (1 - r / 100.0)
        return proposal_total, proposal_total - base

    # --- Discount (percent and value are two views of one number) ---

    def validate_discount_percent(self, discount_percent: float) -> None:
        if discount_percent is None or discount_percent < 0:
            raise ConfigurationError("Discount cannot be negative")
        if discount_percent > self.config.max_discount_percent:
            raise ConfigurationError(
                f"Discount {discount_percent:.2f}% exceeds the maximum "
                f"of {self.config.max_discount_percent:.2f}%"
            )

    def discount_value_from_percent(self, proposal_total: float, discount_percent: float) -> float:
        self.validate_discount_percent(discount_percent)
        return self.discount_for(proposal_total, discount_percent)

    @staticmethod
    def discount_for(proposal_total: float, discount_percent: float) -> float:
        """Value of an already accepted percent. The ceiling is only checked on entry."""
        return proposal_total * discount_percent / 100.0

    @staticmethod
    def markup_score(line: EnvironmentQuoteLine) -> float:
        """Margin over cost as a ratio: (sale - cost) / cost, 0 without a cost."""
        if line.cost_total <= 0:
            return 0.0
        return (line.sale_value - line.cost_total) / line.cost_total

    def discount_percent_from_value(self, proposal_total: float, discount_value: float) -> float:
        if discount_value is None or discount_value < 0:
            raise ConfigurationError("Discount cannot be negative")
        if proposal_total <= 0:
            if discount_value > 0:
                raise ConfigurationError("Cannot discount an empty proposal")
            return 0.0
        discount_percent = discount_value / proposal_total * 100.0
        self.validate_discount_percent(discount_percent)
        return discount_percent

    @staticmethod
    def final_value(proposal_total: float, discount_value: float) -> float:
        return proposal_total - discount_value
