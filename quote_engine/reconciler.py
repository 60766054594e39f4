"""
Discount/Allocation Reconciler.

The operator composes a payment schedule against the final value. The
remainder (final value minus everything scheduled) is always readable;
finalization is refused until it is under the tolerance.

Tolerance is absolute: anything under one currency unit counts as balanced,
which absorbs cent rounding from splitting installments.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional

from .exceptions import ConfigurationError, ReconciliationBlocked
from .money import format_brl
from .schemas import Installment, PaymentMethod

logger = logging.getLogger(__name__)

SINGLE_PAYMENT_LABEL = "À vista"
DOWN_PAYMENT_LABEL = "Entrada"
DEFAULT_INTERVAL_DAYS = 30


def build_installments(
    method: PaymentMethod,
    amount: float,
    count: int,
    first_due_date: date,
    interval_days: int = DEFAULT_INTERVAL_DAYS,
) -> List[Installment]:
    """
    Split `amount` into `count` installments, `interval_days` apart.

    Each installment is rounded to cents; the last one takes the leftover
    cents so the split adds back to `amount`.
    """
    if amount is None or amount <= 0:
        raise ConfigurationError("Installment amount must be positive")
    if count is None or count < 1:
        raise ConfigurationError("Installment count must be at least 1")
    if interval_days < 1:
        raise ConfigurationError("Installment interval must be at least one day")

    share = round(amount / count, 2)
    last = round(amount - share * (count - 1), 2)
    if share <= 0 or last <= 0:
        raise ConfigurationError(
            f"{format_brl(amount)} cannot be split into {count} installments of at least one cent"
        )

    if count == 1:
        return [Installment(method=method, due_date=first_due_date,
                            amount=last, label=SINGLE_PAYMENT_LABEL)]

    installments = []
    for k in range(1, count + 1):
        value = share if k < count else last
        installments.append(Installment(
            method=method,
            due_date=first_due_date + timedelta(days=interval_days * (k - 1)),
            amount=value,
            label=f"{k}/{count}",
        ))
    return installments


def down_payment(method: PaymentMethod, amount: float, due_date: date) -> Installment:
    if amount is None or round(amount, 2) <= 0:
        raise ConfigurationError("Down payment must be at least one cent")
    return Installment(method=method, due_date=due_date, amount=round(amount, 2),
                       label=DOWN_PAYMENT_LABEL)


def schedule_total(schedule: List[Installment]) -> float:
    return sum(installment.amount for installment in schedule)


def sort_schedule(schedule: List[Installment]) -> List[Installment]:
    # Stable: installments due the same day keep their entry order
    return sorted(schedule, key=lambda installment: installment.due_date)


class PaymentScheduleReconciler:
    """
    Schedule + final value + tolerance. Recomputes on every read.
    """

    def __init__(self, final_value: float, tolerance: float = 1.00,
                 schedule: Optional[List[Installment]] = None):
        if tolerance <= 0:
            raise ConfigurationError("Balance tolerance must be positive")
        self.final_value = final_value
        self.tolerance = tolerance
        self.schedule = sort_schedule(list(schedule or []))

    @property
    def scheduled_total(self) -> float:
        return schedule_total(self.schedule)

    @property
    def remainder(self) -> float:
        return self.final_value - self.scheduled_total

    @property
    def is_balanced(self) -> bool:
        return abs(self.remainder) < self.tolerance

    @property
    def can_apply_remainder_as_discount(self) -> bool:
        """Only leftover money becomes discount. Over-allocation is fixed by editing installments."""
        return self.remainder > 0

    def add(self, installments: List[Installment]) -> None:
        self.schedule = sort_schedule([*self.schedule, *installments])

    def remove(self, index: int) -> Installment:
        """Drop one installment. Siblings keep their labels ("2/6" stays "2/6")."""
        if index < 0 or index >= len(self.schedule):
            raise ConfigurationError(f"No installment at position {index}")
        return self.schedule.pop(index)

    def ensure_balanced(self) -> None:
        if not self.is_balanced:
            logger.info("Finalization blocked: remainder %.2f", self.remainder)
            raise ReconciliationBlocked(self.remainder, self.tolerance)
