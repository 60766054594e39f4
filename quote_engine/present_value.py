"""
Present-Value Engine.

Discounts a payment schedule to today with a daily rate derived from the
monthly interest rate (i/100/30 per day). The gap between what the client
pays and its present value is the financing cost of offering installments.
"""

from datetime import date
from typing import List, Optional

from .exceptions import ConfigurationError
from .schemas import Installment


def _validate_rate(monthly_rate_percent: float) -> float:
    rate = monthly_rate_percent or 0.0
    if rate < 0:
        raise ConfigurationError("Interest rate cannot be negative")
    return rate


def days_from_today(due_date: date, today: date) -> int:
    """Past-dated installments count as due today."""
    return max(0, (due_date - today).days)


def present_value(
    schedule: List[Installment],
    monthly_rate_percent: float,
    today: Optional[date] = None,
) -> float:
    today = today or date.today()
    daily_rate = _validate_rate(monthly_rate_percent) / 100.0 / 30.0
    return sum(
        installment.amount / (1 + daily_rate) ** days_from_today(installment.due_date, today)
        for installment in schedule
    )


def financing_cost(
    schedule: List[Installment],
    monthly_rate_percent: float,
    today: Optional[date] = None,
) -> float:
    total = sum(installment.amount for installment in schedule)
    return total - present_value(schedule, monthly_rate_percent, today)


def net_commission_base(final_value: float, referral_payout: float, financing: float) -> float:
    """What commissions are paid on: price minus partner payout minus financing cost."""
    return (final_value - referral_payout) - financing


def flat_installment_present_value(total: float, installments: int, monthly_rate_percent: float) -> float:
    """
    Quick-quote estimate before any schedule exists: `installments` equal
    monthly payments, the k-th discounted k months.
    """
    rate = _validate_rate(monthly_rate_percent)
    if rate == 0 or not installments or installments <= 1:
        return total
    monthly = rate / 100.0
    share = total / installments
    return sum(share / (1 + monthly) ** k for k in range(1, installments + 1))
