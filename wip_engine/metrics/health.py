"""
Portfolio health score.

A single 0-100 number over Active and On Hold jobs, docked for
underbilling, fixed-price margin slippage and schedule slip.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from wip_engine.config import (
    EngineConfig,
    HEALTH_GRADES,
    HEALTH_MARGIN_CAP,
    HEALTH_MARGIN_WEIGHT,
    HEALTH_SCHEDULE_CAP,
    HEALTH_SCHEDULE_WEIGHT,
    HEALTH_UNDERBILLED_CAP,
    HEALTH_UNDERBILLED_WEIGHT,
    config as default_config,
)
from wip_engine.data.models import JobStatus, JobType, JobRecord
from wip_engine.data.semantic import HUNDRED, ZERO, jobs_with_status, percent, sum_breakdown
from wip_engine.metrics.earned_value import calculate_earned_value
from wip_engine.metrics.job_metrics import is_behind_schedule


@dataclass(frozen=True)
class PortfolioHealth:
    score: int
    grade: str
    job_count: int
    underbilled_pct: Decimal
    avg_margin_variance: Decimal
    behind_schedule_pct: Decimal


def health_grade(score: int) -> str:
    for cutoff, grade in HEALTH_GRADES:
        if score >= cutoff:
            return grade
    return "F"


def _margin_variance(job: JobRecord) -> Optional[Decimal]:
    """Forecast minus original profit, in points of contract. None without a contract."""
    contract = sum_breakdown(job.contract)
    if contract <= 0:
        return None
    original_profit = contract - sum_breakdown(job.budget)
    forecast_profit = calculate_earned_value(job).forecasted_profit
    return (forecast_profit - original_profit) / contract * HUNDRED


def compute_portfolio_health(jobs: Iterable[JobRecord],
                             config: Optional[EngineConfig] = None) -> PortfolioHealth:
    cfg = config or default_config
    live = jobs_with_status(jobs, JobStatus.ACTIVE, JobStatus.ON_HOLD)
    if not live:
        return PortfolioHealth(
            score=100, grade="A", job_count=0,
            underbilled_pct=ZERO, avg_margin_variance=ZERO, behind_schedule_pct=ZERO,
        )

    count = Decimal(len(live))
    underbilled = sum(1 for job in live if calculate_earned_value(job).billing_difference < 0)
    behind = sum(1 for job in live if is_behind_schedule(job, cfg.schedule_slack_days))

    variances = [
        variance for variance in (
            _margin_variance(job) for job in live if job.job_type == JobType.FIXED_PRICE
        )
        if variance is not None
    ]
    avg_variance = sum(variances, ZERO) / Decimal(len(variances)) if variances else ZERO

    underbilled_pct = percent(Decimal(underbilled), count)
    behind_pct = percent(Decimal(behind), count)

    score = (
        HUNDRED
        - min(underbilled_pct * HEALTH_UNDERBILLED_WEIGHT, HEALTH_UNDERBILLED_CAP)
        - min(max(-avg_variance, ZERO) * HEALTH_MARGIN_WEIGHT, HEALTH_MARGIN_CAP)
        - min(behind_pct * HEALTH_SCHEDULE_WEIGHT, HEALTH_SCHEDULE_CAP)
    )
    score = int(max(score, ZERO).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return PortfolioHealth(
        score=score,
        grade=health_grade(score),
        job_count=len(live),
        underbilled_pct=underbilled_pct,
        avg_margin_variance=avg_variance,
        behind_schedule_pct=behind_pct,
    )
