"""
Smart risk engines: underbilling risk, schedule drift, margin fade, and
the needs-attention queue built from them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Tuple, Union

from wip_engine.config import (
    ATTENTION_MARGIN_FADE_POINTS,
    ATTENTION_SCHEDULE_DRIFT_WEEKS,
    ATTENTION_UNDERBILLING_PCT,
    MARGIN_FADE_ALERT_POINTS,
    SCHEDULE_DRIFT_MIN_RATIO,
    UNDERBILLING_RISK_HIGH,
    UNDERBILLING_RISK_MEDIUM,
)
from wip_engine.data.models import JobRecord, JobStatus, JobType
from wip_engine.data.semantic import (
    HUNDRED,
    ZERO,
    as_date,
    jobs_with_status,
    pm_name,
    sum_breakdown,
)
from wip_engine.metrics.earned_value import calculate_earned_value

Instant = Union[date, datetime]

DAYS_PER_WEEK = Decimal("7")


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    NONE = "None"


@dataclass(frozen=True)
class MarginFade:
    is_fading: bool
    fade_percent: Decimal


@dataclass(frozen=True)
class SmartRiskAnalysis:
    underbilling_risk: RiskLevel
    schedule_drift_weeks: int
    margin_fade_percent: Decimal
    is_margin_fading: bool


@dataclass(frozen=True)
class AttentionReason:
    type: str
    message: str
    severity: str


@dataclass
class AttentionItem:
    job: JobRecord
    reasons: List[AttentionReason] = field(default_factory=list)
    profit_variance: Decimal = ZERO

    @property
    def has_high_severity(self) -> bool:
        return any(reason.severity == "high" for reason in self.reasons)


def calculate_underbilling_risk(job: JobRecord) -> RiskLevel:
    """
    Underbilling measured against contract value.

    High: under-billed by more than 10% of contract.
    Medium: more than 5%.
    """
    contract = sum_breakdown(job.contract)
    if contract == 0:
        return RiskLevel.NONE

    position = calculate_earned_value(job).billing_difference / contract
    if position < UNDERBILLING_RISK_HIGH:
        return RiskLevel.HIGH
    if position < UNDERBILLING_RISK_MEDIUM:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_schedule_drift(job: JobRecord, now: Instant) -> int:
    """
    Estimated weeks behind, from time elapsed vs budget consumed.

    Drift ratio = share of the scheduled duration elapsed minus share of
    budget spent. Ratios under 10% are normal fluctuation.
    """
    if job.start_date is None or job.end_date is None:
        return 0

    today = as_date(now)
    total_days = (job.end_date - job.start_date).days
    if today < job.start_date or total_days <= 0:
        return 0

    budget = sum_breakdown(job.budget)
    if budget <= 0:
        return 0

    time_share = Decimal((today - job.start_date).days) / Decimal(total_days)
    cost_share = sum_breakdown(job.costs) / budget
    drift = time_share - cost_share
    if drift < SCHEDULE_DRIFT_MIN_RATIO:
        return 0

    weeks = (drift * total_days / DAYS_PER_WEEK).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(int(weeks), 0)


def calculate_margin_fade(job: JobRecord) -> MarginFade:
    """Margin points lost between the original estimate and the current forecast."""
    contract = sum_breakdown(job.contract)
    if contract == 0:
        return MarginFade(is_fading=False, fade_percent=ZERO)

    original_margin = (contract - sum_breakdown(job.budget)) / contract
    forecast_cost = sum_breakdown(job.costs) + sum_breakdown(job.cost_to_complete)
    forecast_margin = (contract - forecast_cost) / contract
    fade_points = (original_margin - forecast_margin) * HUNDRED

    return MarginFade(
        is_fading=fade_points > MARGIN_FADE_ALERT_POINTS,
        fade_percent=fade_points.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
    )


def analyze_job_risk(job: JobRecord, now: Instant) -> SmartRiskAnalysis:
    fade = calculate_margin_fade(job)
    return SmartRiskAnalysis(
        underbilling_risk=calculate_underbilling_risk(job),
        schedule_drift_weeks=calculate_schedule_drift(job, now),
        margin_fade_percent=fade.fade_percent,
        is_margin_fading=fade.is_fading,
    )


# =============================================================================
# NEEDS ATTENTION
# =============================================================================

def calculate_underbilling_percent(job: JobRecord) -> Decimal:
    """Under-billed amount as a percent of earned revenue; 0 when not under-billed."""
    earned_value = calculate_earned_value(job)
    if earned_value.earned_revenue <= 0 or earned_value.billing_difference >= 0:
        return ZERO
    return -earned_value.billing_difference / earned_value.earned_revenue * HUNDRED


def calculate_profit_variance(job: JobRecord) -> Decimal:
    """Forecast profit vs the original estimate; T&M jobs report forecast profit."""
    earned_value = calculate_earned_value(job)
    if job.job_type == JobType.TIME_AND_MATERIAL:
        return earned_value.forecasted_profit
    original_profit = sum_breakdown(job.contract) - sum_breakdown(job.budget)
    return earned_value.forecasted_profit - original_profit


def _severity(value, thresholds: Tuple) -> str:
    return "high" if value > thresholds[1] else "medium"


def attention_reasons(job: JobRecord, now: Instant) -> List[AttentionReason]:
    reasons = []

    underbilling = calculate_underbilling_percent(job)
    if underbilling > ATTENTION_UNDERBILLING_PCT[0]:
        reasons.append(AttentionReason(
            type="underbilling",
            message=f"Underbilled {underbilling:.0f}%",
            severity=_severity(underbilling, ATTENTION_UNDERBILLING_PCT),
        ))

    fade = calculate_margin_fade(job).fade_percent
    if fade > ATTENTION_MARGIN_FADE_POINTS[0]:
        reasons.append(AttentionReason(
            type="margin-fade",
            message=f"Margin fading: -{fade:.1f} pts",
            severity=_severity(fade, ATTENTION_MARGIN_FADE_POINTS),
        ))

    drift = calculate_schedule_drift(job, now)
    if drift > ATTENTION_SCHEDULE_DRIFT_WEEKS[0]:
        reasons.append(AttentionReason(
            type="schedule-drift",
            message=f"{drift} weeks behind schedule",
            severity=_severity(drift, ATTENTION_SCHEDULE_DRIFT_WEEKS),
        ))

    return reasons


def build_attention_queue(jobs: Iterable[JobRecord], now: Instant) -> List[AttentionItem]:
    """
    Active and On Hold jobs with at least one warning.

    Jobs with a high severity reason come first, then jobs with more
    reasons.
    """
    items = []
    for job in jobs_with_status(jobs, JobStatus.ACTIVE, JobStatus.ON_HOLD):
        reasons = attention_reasons(job, now)
        if reasons:
            items.append(AttentionItem(job=job, reasons=reasons, profit_variance=calculate_profit_variance(job)))

    return sorted(items, key=lambda item: (not item.has_high_severity, -len(item.reasons)))


def attention_by_pm(items: Iterable[AttentionItem], top: int = 3) -> List[Tuple[str, int]]:
    """PMs with the most jobs needing attention."""
    counts: Dict[str, int] = {}
    for item in items:
        name = pm_name(item.job)
        counts[name] = counts.get(name, 0) + 1
    return sorted(counts.items(), key=lambda entry: entry[1], reverse=True)[:top]
