"""
Portfolio metrics pack.

Single source of truth for: company-wide totals, backlog, PM grouping,
PM load and the month-end report.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from wip_engine.config import EngineConfig, PM_LOAD_CRITICAL, PM_LOAD_WARNING
from wip_engine.data.models import JobRecord, JobStatus
from wip_engine.data.semantic import (
    ZERO,
    as_date,
    jobs_with_status,
    percent,
    pm_name,
    safe_divide,
    sum_breakdown,
    sum_money,
)
from wip_engine.metrics.earned_value import calculate_earned_value, profit_margin_percent
from wip_engine.metrics.job_metrics import project_job_metrics
from wip_engine.logging_config import get_logger

logger = get_logger("metrics.portfolio")

Instant = Union[date, datetime]


@dataclass(frozen=True)
class PortfolioSummary:
    """Company-wide rollup of a job collection."""
    job_count: int
    active_job_count: int
    future_job_count: int
    total_contract_value: Decimal
    total_costs_to_date: Decimal
    total_invoiced: Decimal
    total_earned_revenue: Decimal
    backlog_to_earn: Decimal
    net_billing_position: Decimal
    total_over_billing: Decimal
    total_under_billing: Decimal
    average_profit_margin: Decimal


def total_earned_revenue(jobs: Iterable[JobRecord]) -> Decimal:
    return sum_money(calculate_earned_value(job).earned_revenue for job in jobs)


def backlog_to_earn(jobs: Iterable[JobRecord]) -> Decimal:
    """Unearned fixed-price contract value; T&M jobs contribute 0."""
    return sum_money(calculate_earned_value(job).unearned_backlog for job in jobs)


def net_billing_position(jobs: Iterable[JobRecord]) -> Decimal:
    return sum_money(calculate_earned_value(job).billing_difference for job in jobs)


def summarize_portfolio(jobs: Sequence[JobRecord],
                        now: Instant,
                        config: Optional[EngineConfig] = None) -> PortfolioSummary:
    """
    Roll per-job metrics up into company-wide totals.

    Every sum is additive: totals over a partition of ``jobs`` add up to
    the totals over ``jobs``.
    """
    jobs = list(jobs)
    metrics = [project_job_metrics(job, now, config) for job in jobs]
    billing = [m.billing_difference for m in metrics]

    margins = [m.profit_margin_percent for m in metrics]
    average_margin = safe_divide(sum_money(margins), Decimal(len(margins)))

    summary = PortfolioSummary(
        job_count=len(jobs),
        active_job_count=len(jobs_with_status(jobs, JobStatus.ACTIVE)),
        future_job_count=len(jobs_with_status(jobs, JobStatus.FUTURE)),
        total_contract_value=sum_money(sum_breakdown(job.contract) for job in jobs),
        total_costs_to_date=sum_money(sum_breakdown(job.costs) for job in jobs),
        total_invoiced=sum_money(sum_breakdown(job.invoiced) for job in jobs),
        total_earned_revenue=sum_money(m.earned_revenue for m in metrics),
        backlog_to_earn=sum_money(m.unearned_backlog for m in metrics),
        net_billing_position=sum_money(billing),
        total_over_billing=sum_money(b for b in billing if b > 0),
        total_under_billing=sum_money(-b for b in billing if b < 0),
        average_profit_margin=average_margin,
    )
    logger.debug("portfolio summarized", extra={"job_count": summary.job_count})
    return summary


def group_by_pm(jobs: Iterable[JobRecord]) -> Dict[str, List[JobRecord]]:
    """
    Partition jobs by project manager in first-appearance order.

    Jobs without a PM land in "Unassigned"; no job is dropped.
    """
    groups: Dict[str, List[JobRecord]] = {}
    for job in jobs:
        groups.setdefault(pm_name(job), []).append(job)
    return groups


def compute_pm_load(jobs: Iterable[JobRecord], project_managers: Sequence[str]) -> Dict:
    """
    Average active jobs per PM on the roster.

    An empty roster counts as one PM.
    """
    active = len(jobs_with_status(jobs, JobStatus.ACTIVE))
    pm_count = len(project_managers) or 1
    average = Decimal(active) / Decimal(pm_count)

    if average >= PM_LOAD_CRITICAL:
        load_class = "critical"
    elif average >= PM_LOAD_WARNING:
        load_class = "warning"
    else:
        load_class = "good"

    return {
        "active_jobs": active,
        "pm_count": pm_count,
        "avg_jobs_per_pm": average,
        "load_class": load_class,
    }


def build_month_end_report(jobs: Iterable[JobRecord], now: Instant) -> Dict:
    """
    Month-end WIP schedule over Active and Completed jobs.

    Jobs are sorted by the size of their over/under billing, largest
    first. Net billing position is over-billing minus under-billing.
    """
    relevant = jobs_with_status(jobs, JobStatus.ACTIVE, JobStatus.COMPLETED)
    period = as_date(now)

    rows = []
    for job in relevant:
        earned_value = calculate_earned_value(job)
        contract_value = sum_breakdown(job.contract)
        rows.append({
            "id": job.id,
            "job_no": job.job_no,
            "job_name": job.job_name,
            "client": job.client,
            "project_manager": job.project_manager,
            "status": job.status.value,
            "contract_value": contract_value,
            "costs_to_date": sum_breakdown(job.costs),
            "percent_complete": (earned_value.percent_complete or ZERO) * 100,
            "earned_revenue": earned_value.earned_revenue,
            "invoiced": sum_breakdown(job.invoiced),
            "over_under_billing": earned_value.billing_difference,
            "is_over_billed": earned_value.is_over_billed,
            "forecasted_profit": earned_value.forecasted_profit,
            "forecast_margin_pct": percent(earned_value.forecasted_profit, contract_value),
            "planned_margin_pct": profit_margin_percent(job, earned_value),
        })
    rows.sort(key=lambda row: abs(row["over_under_billing"]), reverse=True)

    over = sum_money(r["over_under_billing"] for r in rows if r["over_under_billing"] > 0)
    under = sum_money(-r["over_under_billing"] for r in rows if r["over_under_billing"] < 0)

    return {
        "month": period.month,
        "year": period.year,
        "month_name": period.strftime("%B"),
        "total_earned_revenue": sum_money(r["earned_revenue"] for r in rows),
        "total_contract_value": sum_money(r["contract_value"] for r in rows),
        "total_costs_to_date": sum_money(r["costs_to_date"] for r in rows),
        "total_invoiced": sum_money(r["invoiced"] for r in rows),
        "total_over_billing": over,
        "total_under_billing": under,
        "net_billing_position": over - under,
        "jobs": pd.DataFrame(rows),
    }
