"""
Earned value metrics pack.

Single source of truth for: earned revenue, billing position, forecasted
profit, backlog and planned margin of one job.

Job type is dispatched once, through ``_RULES``. Nothing here reads the
clock, so a frozen snapshot's jobs compute exactly like live ones.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Optional

from wip_engine.data.models import (
    FixedPriceJob,
    JobRecord,
    JobType,
    LaborBillingType,
    TimeAndMaterialJob,
)
from wip_engine.data.semantic import ZERO, percent, sum_breakdown
from wip_engine.logging_config import get_logger

logger = get_logger("metrics.earned_value")

ONE = Decimal("1")


@dataclass(frozen=True)
class EarnedValue:
    """Earned value of one job."""
    earned_revenue: Decimal
    billing_difference: Decimal
    forecasted_profit: Decimal
    # Fraction (not %) of budget consumed; None when it cannot be defined
    percent_complete: Optional[Decimal]
    unearned_backlog: Decimal

    @property
    def is_over_billed(self) -> bool:
        return self.billing_difference > 0

    @property
    def billing_label(self) -> str:
        return "Over Billed" if self.is_over_billed else "Under Billed"

    @property
    def under_billed_amount(self) -> Decimal:
        """Under-billed portion only; over-billed jobs contribute 0."""
        return max(-self.billing_difference, ZERO)


@dataclass(frozen=True)
class _EarningRule:
    earned_value: Callable[[JobRecord], EarnedValue]
    profit_margin: Callable[[JobRecord, EarnedValue], Decimal]


# =============================================================================
# FIXED PRICE
# =============================================================================

def _fixed_price_earned_value(job: FixedPriceJob) -> EarnedValue:
    """
    Cost-to-cost: earned = contract * costs / budget.

    A zero or negative budget makes percent complete undefined; the job
    is treated as 0% earned. Overruns are not clamped to the contract.
    """
    contract = sum_breakdown(job.contract)
    budget = sum_breakdown(job.budget)
    costs = sum_breakdown(job.costs)
    invoiced = sum_breakdown(job.invoiced)
    cost_to_complete = sum_breakdown(job.cost_to_complete)

    if budget <= 0:
        logger.debug("non-positive budget, treating job as unearned", extra={"job_id": job.id})
        percent_complete = None
        earned = ZERO
    else:
        percent_complete = costs / budget
        earned = contract * costs / budget

    return EarnedValue(
        earned_revenue=earned,
        billing_difference=invoiced - earned,
        forecasted_profit=contract - (costs + cost_to_complete),
        percent_complete=percent_complete,
        unearned_backlog=max(contract - earned, ZERO),
    )


def _fixed_price_margin(job: FixedPriceJob, earned_value: EarnedValue) -> Decimal:
    """Planned margin: (contract - budget) / contract."""
    contract = sum_breakdown(job.contract)
    return percent(contract - sum_breakdown(job.budget), contract)


# =============================================================================
# TIME AND MATERIAL
# =============================================================================

def _markup(value: Optional[Decimal]) -> Decimal:
    # Unset or zero markups bill at cost
    return value if value else ONE


def _time_and_material_earned(job: TimeAndMaterialJob) -> Decimal:
    """
    Cost-plus earning: what has been spent is what has been earned.

    With billing settings, each cost bucket is marked up (or labor is
    billed at a fixed rate times hours).
    """
    settings = job.tm_settings
    if settings is None:
        return sum_breakdown(job.costs)

    if settings.labor_billing_type == LaborBillingType.FIXED_RATE:
        labor = (settings.labor_bill_rate or ZERO) * (settings.labor_hours or ZERO)
    else:
        labor = job.costs.labor * _markup(settings.labor_markup)
    material = job.costs.material * _markup(settings.material_markup)
    other = job.costs.other * _markup(settings.other_markup)
    return labor + material + other


def _time_and_material_earned_value(job: TimeAndMaterialJob) -> EarnedValue:
    earned = _time_and_material_earned(job)
    return EarnedValue(
        earned_revenue=earned,
        billing_difference=sum_breakdown(job.invoiced) - earned,
        forecasted_profit=earned - sum_breakdown(job.costs),
        percent_complete=None,
        # No contract ceiling to earn against
        unearned_backlog=ZERO,
    )


def _time_and_material_margin(job: TimeAndMaterialJob, earned_value: EarnedValue) -> Decimal:
    return percent(earned_value.forecasted_profit, earned_value.earned_revenue)


_RULES: Dict[JobType, _EarningRule] = {
    JobType.FIXED_PRICE: _EarningRule(_fixed_price_earned_value, _fixed_price_margin),
    JobType.TIME_AND_MATERIAL: _EarningRule(_time_and_material_earned_value, _time_and_material_margin),
}


def _rule_for(job: JobRecord) -> _EarningRule:
    job_type = getattr(job, "job_type", None)
    if job_type not in _RULES:
        raise TypeError(f"{type(job).__name__} is not a FixedPriceJob or TimeAndMaterialJob")
    return _RULES[job_type]


def calculate_earned_value(job: JobRecord) -> EarnedValue:
    """Earned revenue, billing difference and forecasted profit of one job."""
    return _rule_for(job).earned_value(job)


def profit_margin_percent(job: JobRecord, earned_value: Optional[EarnedValue] = None) -> Decimal:
    """
    Margin in percent.

    Fixed price uses the planned margin (contract vs budget); T&M uses
    forecasted profit over earned revenue.
    """
    if earned_value is None:
        earned_value = calculate_earned_value(job)
    return _rule_for(job).profit_margin(job, earned_value)


def calculate_percent_complete(job: JobRecord) -> Decimal:
    """Percent complete on a 0-100 scale; 0 when undefined."""
    fraction = calculate_earned_value(job).percent_complete
    return fraction * 100 if fraction is not None else ZERO
