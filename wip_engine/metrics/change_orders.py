"""
Change order metrics pack.

Single source of truth for: job totals with approved change orders
folded in, and forecasted profit including those change orders.

Only approved and completed change orders count. Pending and rejected
ones are tracked upstream but never move a job's numbers.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from wip_engine.config import APPROVED_CHANGE_ORDER_STATUSES
from wip_engine.data.models import (
    ZERO_BREAKDOWN,
    ChangeOrder,
    CostBreakdown,
    JobRecord,
    JobType,
)
from wip_engine.data.semantic import add_breakdowns, sum_breakdown
from wip_engine.logging_config import get_logger
from wip_engine.metrics.earned_value import calculate_earned_value

logger = get_logger("metrics.change_orders")

CHANGE_ORDER_FIELDS = ["contract", "budget", "invoiced", "costs", "cost_to_complete"]


@dataclass(frozen=True)
class JobTotals:
    """A job's breakdowns with approved change orders added, plus the change order portions alone."""
    contract: CostBreakdown
    budget: CostBreakdown
    invoiced: CostBreakdown
    costs: CostBreakdown
    cost_to_complete: CostBreakdown
    co_contract: CostBreakdown
    co_budget: CostBreakdown
    co_invoiced: CostBreakdown
    co_costs: CostBreakdown
    co_cost_to_complete: CostBreakdown
    has_approved_change_orders: bool


def is_approved(change_order: ChangeOrder) -> bool:
    return change_order.status.value in APPROVED_CHANGE_ORDER_STATUSES


def approved_change_orders(change_orders: Iterable[ChangeOrder]) -> List[ChangeOrder]:
    return [co for co in change_orders if is_approved(co)]


def sum_change_orders(change_orders: Iterable[ChangeOrder], field: str) -> CostBreakdown:
    """
    Sum one breakdown field over the approved change orders.

    ``field`` is one of contract, budget, invoiced, costs, cost_to_complete.
    """
    if field not in CHANGE_ORDER_FIELDS:
        raise ValueError(f"unknown change order field {field!r}")

    total = ZERO_BREAKDOWN
    for co in approved_change_orders(change_orders):
        total = add_breakdowns(total, getattr(co, field))
    return total


def _for_job(job: JobRecord, change_orders: Iterable[ChangeOrder]) -> List[ChangeOrder]:
    own = []
    for co in change_orders:
        if co.job_id != job.id:
            logger.debug("ignoring change order of another job", extra={"job_id": job.id, "change_order_id": co.id})
            continue
        own.append(co)
    return own


def job_totals_with_change_orders(job: JobRecord,
                                  change_orders: Iterable[ChangeOrder] = ()) -> JobTotals:
    """
    Effective contract, budget, invoiced, costs and cost to complete.

    Change orders that belong to another job are ignored.
    """
    own = _for_job(job, change_orders)
    portions = {name: sum_change_orders(own, name) for name in CHANGE_ORDER_FIELDS}

    return JobTotals(
        contract=add_breakdowns(job.contract, portions["contract"]),
        budget=add_breakdowns(job.budget, portions["budget"]),
        invoiced=add_breakdowns(job.invoiced, portions["invoiced"]),
        costs=add_breakdowns(job.costs, portions["costs"]),
        cost_to_complete=add_breakdowns(job.cost_to_complete, portions["cost_to_complete"]),
        co_contract=portions["contract"],
        co_budget=portions["budget"],
        co_invoiced=portions["invoiced"],
        co_costs=portions["costs"],
        co_cost_to_complete=portions["cost_to_complete"],
        has_approved_change_orders=any(is_approved(co) for co in own),
    )


def forecasted_profit_with_change_orders(job: JobRecord,
                                         change_orders: Iterable[ChangeOrder] = ()) -> Decimal:
    """
    Forecasted profit with approved change orders included.

    T&M jobs keep their earned-basis profit and add each change order at
    contract minus costs. Fixed-price jobs use total contract minus total
    forecast cost (costs plus cost to complete).
    """
    totals = job_totals_with_change_orders(job, change_orders)

    if job.job_type == JobType.TIME_AND_MATERIAL:
        co_profit = sum_breakdown(totals.co_contract) - sum_breakdown(totals.co_costs)
        return calculate_earned_value(job).forecasted_profit + co_profit

    return sum_breakdown(totals.contract) - (sum_breakdown(totals.costs) + sum_breakdown(totals.cost_to_complete))


def group_change_orders(change_orders: Iterable[ChangeOrder]) -> Dict[str, List[ChangeOrder]]:
    """Change orders keyed by parent job id, in input order."""
    grouped: Dict[str, List[ChangeOrder]] = {}
    for co in change_orders:
        grouped.setdefault(co.job_id, []).append(co)
    return grouped


def build_change_order_table(jobs: Sequence[JobRecord],
                             change_orders: Iterable[ChangeOrder]) -> pd.DataFrame:
    """
    One row per job: base contract, approved change order value and
    forecasted profit with and without change orders.

    Currency columns hold Decimal values.
    """
    grouped = group_change_orders(change_orders)

    rows = []
    for job in jobs:
        own = grouped.get(job.id, [])
        totals = job_totals_with_change_orders(job, own)
        rows.append({
            "id": job.id,
            "job_no": job.job_no,
            "job_name": job.job_name,
            "change_order_count": len(own),
            "approved_count": len(approved_change_orders(own)),
            "base_contract": sum_breakdown(job.contract),
            "co_contract": sum_breakdown(totals.co_contract),
            "total_contract": sum_breakdown(totals.contract),
            "forecasted_profit": calculate_earned_value(job).forecasted_profit,
            "forecasted_profit_with_cos": forecasted_profit_with_change_orders(job, own),
        })

    columns = [
        "id", "job_no", "job_name", "change_order_count", "approved_count",
        "base_contract", "co_contract", "total_contract",
        "forecasted_profit", "forecasted_profit_with_cos",
    ]
    return pd.DataFrame(rows, columns=columns)
