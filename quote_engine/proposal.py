"""
Proposal draft commands.

Every operator edit is a function draft -> new draft, followed by
recalculate(). Totals are derived on read by totals(); nothing is cached on
the draft except the two discount fields, which are kept consistent with
the discount percent as the source of truth.
"""

import logging
import time
from datetime import date, datetime
from typing import List, Optional

from .config import PricingConfig
from .exceptions import ConfigurationError
from .money import format_brl
from .pricing_engine import PricingEngine
from .present_value import (
    financing_cost,
    flat_installment_present_value,
    net_commission_base,
    present_value,
)
from .reconciler import PaymentScheduleReconciler, sort_schedule
from .schemas import ContractRecord, EnvironmentQuoteLine, Installment, ProposalDraft, ProposalTotals

logger = logging.getLogger(__name__)


def _proposal_total(draft: ProposalDraft, engine: PricingEngine):
    base = engine.selected_base(draft.lines)
    proposal_total, payout = engine.referral_uplift(base, draft.referral_percent)
    return base, proposal_total, payout


def recalculate(draft: ProposalDraft, config: PricingConfig) -> ProposalDraft:
    """
    Re-derive everything that depends on other fields. Idempotent.

    The discount value follows the percent, so deselecting an environment
    shrinks the discount along with the total. A percent accepted earlier
    stays valid even if the store ceiling has since been lowered.
    """
    engine = PricingEngine(config)
    _, proposal_total, _ = _proposal_total(draft, engine)
    discount_value = engine.discount_for(proposal_total, draft.discount_percent)
    return draft.model_copy(update={
        "discount_value": discount_value,
        "schedule": sort_schedule(draft.schedule),
    })


def totals(draft: ProposalDraft, config: PricingConfig, today: Optional[date] = None) -> ProposalTotals:
    engine = PricingEngine(config)
    base, proposal_total, payout = _proposal_total(draft, engine)
    final = engine.final_value(proposal_total, draft.discount_value)
    reconciler = PaymentScheduleReconciler(final, config.balance_tolerance, draft.schedule)

    if draft.schedule:
        pv = present_value(draft.schedule, config.interest_rate_monthly, today)
        financing = financing_cost(draft.schedule, config.interest_rate_monthly, today)
    else:
        # No schedule yet: preview with N equal monthly installments
        pv = flat_installment_present_value(final, draft.installment_preview, config.interest_rate_monthly)
        financing = final - pv

    return ProposalTotals(
        base=base,
        proposal_total=proposal_total,
        referral_payout=payout,
        discount_percent=draft.discount_percent,
        discount_value=draft.discount_value,
        final_value=final,
        scheduled_total=reconciler.scheduled_total,
        remainder=reconciler.remainder,
        is_balanced=reconciler.is_balanced,
        can_apply_remainder_as_discount=reconciler.can_apply_remainder_as_discount,
        present_value=pv,
        financing_cost=financing,
        net_commission_base=net_commission_base(final, payout, financing),
        markup_scores={line.id: engine.markup_score(line) for line in draft.lines},
    )


# --- Environment commands ---

def _next_line_id(draft: ProposalDraft) -> int:
    now = int(time.time() * 1000)
    used = [line.id for line in draft.lines]
    return max(now, max(used) + 1) if used else now


def _find_line(draft: ProposalDraft, line_id: int) -> EnvironmentQuoteLine:
    for line in draft.lines:
        if line.id == line_id:
            return line
    raise ConfigurationError(f"Environment {line_id} not found")


def _replace_line(draft: ProposalDraft, updated: EnvironmentQuoteLine) -> ProposalDraft:
    lines = [updated if line.id == updated.id else line for line in draft.lines]
    return draft.model_copy(update={"lines": lines})


def import_environments(draft: ProposalDraft, imported: List[EnvironmentQuoteLine],
                        config: PricingConfig) -> ProposalDraft:
    """Append imported lines, re-numbering any id already taken in the draft."""
    used = {line.id for line in draft.lines}
    next_id = _next_line_id(draft)
    lines = list(draft.lines)
    for line in imported:
        if line.id in used:
            line = line.model_copy(update={"id": next_id})
            next_id += 1
        used.add(line.id)
        next_id = max(next_id, line.id + 1)
        lines.append(line)
    return recalculate(draft.model_copy(update={"lines": lines}), config)


def add_manual_environment(draft: ProposalDraft, environment_name: str, value: float,
                           config: PricingConfig) -> ProposalDraft:
    line = PricingEngine(config).manual_line(environment_name, value, _next_line_id(draft))
    return recalculate(draft.model_copy(update={"lines": [*draft.lines, line]}), config)


def add_detail_item(draft: ProposalDraft, line_id: int, description: str, total_price: float,
                    quantity: float, config: PricingConfig) -> ProposalDraft:
    engine = PricingEngine(config)
    updated = engine.add_detail_item(_find_line(draft, line_id), description, total_price, quantity)
    return recalculate(_replace_line(draft, updated), config)


def remove_detail_item(draft: ProposalDraft, line_id: int, index: int,
                       config: PricingConfig) -> ProposalDraft:
    engine = PricingEngine(config)
    updated = engine.remove_detail_item(_find_line(draft, line_id), index)
    return recalculate(_replace_line(draft, updated), config)


def update_environment(draft: ProposalDraft, line_id: int, config: PricingConfig,
                       environment_name: Optional[str] = None,
                       sale_value: Optional[float] = None,
                       selected: Optional[bool] = None) -> ProposalDraft:
    line = _find_line(draft, line_id)
    if environment_name is not None:
        line = PricingEngine.rename_line(line, environment_name)
    if sale_value is not None:
        line = PricingEngine.override_sale_value(line, sale_value)
    if selected is not None and selected != line.selected:
        line = PricingEngine.toggle_selection(line)
    return recalculate(_replace_line(draft, line), config)


def remove_environment(draft: ProposalDraft, line_id: int, config: PricingConfig) -> ProposalDraft:
    _find_line(draft, line_id)
    lines = [line for line in draft.lines if line.id != line_id]
    return recalculate(draft.model_copy(update={"lines": lines}), config)


# --- Commercial terms ---

def set_referral(draft: ProposalDraft, referral_party_id: Optional[int], referral_percent: float,
                 config: PricingConfig) -> ProposalDraft:
    """A percent without a registered partner still uplifts the proposal."""
    PricingEngine(config).validate_referral(referral_percent)
    updated = draft.model_copy(update={
        "referral_party_id": referral_party_id,
        "referral_percent": referral_percent or 0.0,
    })
    return recalculate(updated, config)


def set_discount_percent(draft: ProposalDraft, discount_percent: float, config: PricingConfig) -> ProposalDraft:
    engine = PricingEngine(config)
    engine.validate_discount_percent(discount_percent)
    return recalculate(draft.model_copy(update={"discount_percent": discount_percent}), config)


def set_discount_value(draft: ProposalDraft, discount_value: float, config: PricingConfig) -> ProposalDraft:
    engine = PricingEngine(config)
    _, proposal_total, _ = _proposal_total(draft, engine)
    discount_percent = engine.discount_percent_from_value(proposal_total, discount_value)
    return recalculate(draft.model_copy(update={"discount_percent": discount_percent}), config)


def set_installment_preview(draft: ProposalDraft, installments: int, config: PricingConfig) -> ProposalDraft:
    if installments is None or installments < 1:
        raise ConfigurationError("Installment count must be at least 1")
    return recalculate(draft.model_copy(update={"installment_preview": installments}), config)


# --- Payment schedule ---

def add_installments(draft: ProposalDraft, installments: List[Installment],
                     config: PricingConfig) -> ProposalDraft:
    return recalculate(draft.model_copy(update={"schedule": [*draft.schedule, *installments]}), config)


def remove_installment(draft: ProposalDraft, index: int, config: PricingConfig) -> ProposalDraft:
    schedule = sort_schedule(draft.schedule)
    if index < 0 or index >= len(schedule):
        raise ConfigurationError(f"No installment at position {index}")
    del schedule[index]
    return recalculate(draft.model_copy(update={"schedule": schedule}), config)


def apply_remainder_as_discount(draft: ProposalDraft, config: PricingConfig) -> ProposalDraft:
    """
    Turn unallocated money into discount so the final value meets the schedule.
    """
    current = totals(draft, config)
    if not current.can_apply_remainder_as_discount:
        raise ConfigurationError(
            f"Nothing to apply as discount (remainder {format_brl(current.remainder)})"
        )
    return set_discount_value(draft, draft.discount_value + current.remainder, config)


# --- Finalization ---

def finalize(draft: ProposalDraft, config: PricingConfig, operator_id: Optional[int] = None,
             today: Optional[date] = None) -> ContractRecord:
    """
    Build the record for the persistence sink. Raises ReconciliationBlocked
    while the schedule does not cover the final value.
    """
    if draft.client_id is None:
        raise ConfigurationError("Select a client before closing the sale")
    selected = [line for line in draft.lines if line.selected]
    if not selected:
        raise ConfigurationError("Select at least one environment")

    current = totals(draft, config, today)
    PaymentScheduleReconciler(
        current.final_value, config.balance_tolerance, draft.schedule,
    ).ensure_balanced()

    record = ContractRecord(
        client_id=draft.client_id,
        operator_id=operator_id,
        lines=selected,
        proposal_total=current.proposal_total,
        discount_value=current.discount_value,
        final_value=current.final_value,
        schedule=sort_schedule(draft.schedule),
        referral_party_id=draft.referral_party_id,
        referral_percent=draft.referral_percent,
        referral_payout=current.referral_payout,
        financing_cost=current.financing_cost,
        net_commission_base=current.net_commission_base,
        finalized_at=datetime.utcnow(),
    )
    logger.info(
        "Proposal finalized for client %s: final %s, %d installments",
        draft.client_id, format_brl(record.final_value), len(record.schedule),
    )
    return record
