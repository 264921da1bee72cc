"""
Job metrics pack.

Single source of truth for: per-job display metrics (margin, days open,
schedule slip and margin risk flags) and schedule warnings for
mobilization phases that run past the contract end.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Union

import pandas as pd

from wip_engine.config import (
    BEHIND_TARGET_CRITICAL_DAYS,
    MOBILIZATION_CRITICAL_DAYS,
    EngineConfig,
    config as default_config,
)
from wip_engine.data.models import JobRecord, JobStatus
from wip_engine.data.semantic import as_date, sum_breakdown
from wip_engine.metrics.earned_value import (
    EarnedValue,
    calculate_earned_value,
    profit_margin_percent,
)

Instant = Union[date, datetime]


@dataclass(frozen=True)
class DerivedJobMetrics:
    """Display metrics of one job. Recomputable, never persisted."""
    earned_revenue: Decimal
    billing_difference: Decimal
    forecasted_profit: Decimal
    profit_margin_percent: Decimal
    days_open: Optional[int]
    is_behind_schedule: bool
    is_at_risk_margin: bool
    percent_complete: Optional[Decimal]
    unearned_backlog: Decimal


def calculate_days_open(job: JobRecord, now: Instant) -> Optional[int]:
    """
    Whole days since start for Active jobs with a scheduled start.

    A start date in the future gives 0.
    """
    if job.status != JobStatus.ACTIVE or job.start_date is None:
        return None
    return max((as_date(now) - job.start_date).days, 0)


def schedule_slip_days(job: JobRecord) -> Optional[int]:
    """Days the end date sits past the target end date; None if either is unscheduled."""
    if job.end_date is None or job.target_end_date is None:
        return None
    return (job.end_date - job.target_end_date).days


def is_behind_schedule(job: JobRecord, slack_days: Optional[int] = None) -> bool:
    if slack_days is None:
        slack_days = default_config.schedule_slack_days
    slip = schedule_slip_days(job)
    return slip is not None and slip > slack_days


def is_at_risk_margin(job: JobRecord, earned_value: EarnedValue) -> bool:
    return job.target_profit is not None and earned_value.forecasted_profit < job.target_profit


# =============================================================================
# SCHEDULE WARNINGS
# =============================================================================

@dataclass(frozen=True)
class ScheduleWarning:
    type: str  # "mobilization-past-contract" or "behind-target"
    message: str
    severity: str  # "warning" or "critical"
    phase_id: Optional[int] = None


def _days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def get_mobilization_warnings(job: JobRecord) -> List[ScheduleWarning]:
    """
    Enabled mobilization phases that demobilize or mobilize after the
    contract end date. Nothing to check while the end date is unscheduled.
    """
    if job.end_date is None:
        return []

    warnings = []
    for phase in job.mobilizations:
        if not phase.enabled:
            continue
        label = f"Phase {phase.id}" + (f" ({phase.description})" if phase.description else "")

        if phase.demobilize_date is not None and phase.demobilize_date > job.end_date:
            days_over = (phase.demobilize_date - job.end_date).days
            warnings.append(ScheduleWarning(
                type="mobilization-past-contract",
                message=f"{label} demob is {_days(days_over)} past contract end",
                severity="critical" if days_over > MOBILIZATION_CRITICAL_DAYS else "warning",
                phase_id=phase.id,
            ))

        if phase.mobilize_date is not None and phase.mobilize_date > job.end_date:
            warnings.append(ScheduleWarning(
                type="mobilization-past-contract",
                message=f"{label} mobilization starts after contract end",
                severity="critical",
                phase_id=phase.id,
            ))
    return warnings


def get_all_schedule_warnings(job: JobRecord, slack_days: Optional[int] = None) -> List[ScheduleWarning]:
    """Mobilization warnings, then a behind-target warning when the job is behind schedule."""
    warnings = get_mobilization_warnings(job)

    if is_behind_schedule(job, slack_days):
        days_late = schedule_slip_days(job)
        warnings.append(ScheduleWarning(
            type="behind-target",
            message=f"Job is {_days(days_late)} behind target completion",
            severity="critical" if days_late > BEHIND_TARGET_CRITICAL_DAYS else "warning",
        ))
    return warnings


def has_schedule_warnings(job: JobRecord, slack_days: Optional[int] = None) -> bool:
    return bool(get_all_schedule_warnings(job, slack_days))


# =============================================================================
# PROJECTION
# =============================================================================

def project_job_metrics(job: JobRecord,
                        now: Instant,
                        config: Optional[EngineConfig] = None) -> DerivedJobMetrics:
    """Compose earned value with status and date fields."""
    cfg = config or default_config
    earned_value = calculate_earned_value(job)

    return DerivedJobMetrics(
        earned_revenue=earned_value.earned_revenue,
        billing_difference=earned_value.billing_difference,
        forecasted_profit=earned_value.forecasted_profit,
        profit_margin_percent=profit_margin_percent(job, earned_value),
        days_open=calculate_days_open(job, now),
        is_behind_schedule=is_behind_schedule(job, cfg.schedule_slack_days),
        is_at_risk_margin=is_at_risk_margin(job, earned_value),
        percent_complete=earned_value.percent_complete,
        unearned_backlog=earned_value.unearned_backlog,
    )


def build_jobs_table(jobs: Iterable[JobRecord],
                     now: Instant,
                     config: Optional[EngineConfig] = None) -> pd.DataFrame:
    """
    One row per job with identity columns and every derived metric.

    Currency columns hold Decimal values.
    """
    cfg = config or default_config
    rows = []
    for job in jobs:
        metrics = project_job_metrics(job, now, cfg)
        rows.append({
            "id": job.id,
            "job_no": job.job_no,
            "job_name": job.job_name,
            "client": job.client,
            "project_manager": job.project_manager,
            "status": job.status.value,
            "job_type": job.job_type.value,
            "contract_value": sum_breakdown(job.contract),
            "costs_to_date": sum_breakdown(job.costs),
            "invoiced": sum_breakdown(job.invoiced),
            "earned_revenue": metrics.earned_revenue,
            "billing_difference": metrics.billing_difference,
            "forecasted_profit": metrics.forecasted_profit,
            "profit_margin_pct": metrics.profit_margin_percent,
            "percent_complete": metrics.percent_complete,
            "unearned_backlog": metrics.unearned_backlog,
            "days_open": metrics.days_open,
            "is_behind_schedule": metrics.is_behind_schedule,
            "is_at_risk_margin": metrics.is_at_risk_margin,
            "schedule_warning_count": len(get_all_schedule_warnings(job, cfg.schedule_slack_days)),
        })

    columns = [
        "id", "job_no", "job_name", "client", "project_manager", "status", "job_type",
        "contract_value", "costs_to_date", "invoiced", "earned_revenue", "billing_difference",
        "forecasted_profit", "profit_margin_pct", "percent_complete", "unearned_backlog",
        "days_open", "is_behind_schedule", "is_at_risk_margin", "schedule_warning_count",
    ]
    return pd.DataFrame(rows, columns=columns)
