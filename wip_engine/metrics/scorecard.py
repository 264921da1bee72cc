"""
PM scorecard metrics pack.

Margin and schedule are judged on Active jobs only; underbilling is
judged on every job a PM owns, whatever its phase.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Union

import pandas as pd

from wip_engine.config import (
    EngineConfig,
    SCORECARD_BEHIND_CRITICAL_COUNT,
    SCORECARD_BEHIND_WARNING_COUNT,
    SCORECARD_MARGIN_GOOD,
    SCORECARD_MARGIN_WARNING,
    SCORECARD_UNDERBILLED_WARNING_LIMIT,
)
from wip_engine.data.models import JobRecord, JobStatus
from wip_engine.data.semantic import ZERO, sum_money
from wip_engine.metrics.job_metrics import project_job_metrics
from wip_engine.metrics.portfolio import group_by_pm

Instant = Union[date, datetime]


class Tier(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    NOT_APPLICABLE = "n/a"


@dataclass(frozen=True)
class PMScorecard:
    project_manager: str
    job_count: int
    active_job_count: int
    avg_margin: Optional[Decimal]
    total_underbilled: Decimal
    jobs_behind_schedule: int
    margin_tier: Tier
    underbilled_tier: Tier
    schedule_tier: Tier


def classify_margin(avg_margin: Optional[Decimal]) -> Tier:
    if avg_margin is None:
        return Tier.NOT_APPLICABLE
    if avg_margin >= SCORECARD_MARGIN_GOOD:
        return Tier.GOOD
    if avg_margin >= SCORECARD_MARGIN_WARNING:
        return Tier.WARNING
    return Tier.CRITICAL


def classify_underbilled(total_underbilled: Decimal) -> Tier:
    if total_underbilled <= 0:
        return Tier.GOOD
    if total_underbilled < SCORECARD_UNDERBILLED_WARNING_LIMIT:
        return Tier.WARNING
    return Tier.CRITICAL


def classify_behind_schedule(count: int) -> Tier:
    if count >= SCORECARD_BEHIND_CRITICAL_COUNT:
        return Tier.CRITICAL
    if count >= SCORECARD_BEHIND_WARNING_COUNT:
        return Tier.WARNING
    return Tier.GOOD


def score_project_manager(project_manager: str,
                          jobs: List[JobRecord],
                          now: Instant,
                          config: Optional[EngineConfig] = None) -> PMScorecard:
    metrics = [(job, project_job_metrics(job, now, config)) for job in jobs]
    active = [m for job, m in metrics if job.status == JobStatus.ACTIVE]

    if active:
        avg_margin = sum_money(m.profit_margin_percent for m in active) / Decimal(len(active))
    else:
        avg_margin = None

    total_underbilled = sum_money(max(-m.billing_difference, ZERO) for _, m in metrics)
    behind = sum(1 for m in active if m.is_behind_schedule)

    return PMScorecard(
        project_manager=project_manager,
        job_count=len(jobs),
        active_job_count=len(active),
        avg_margin=avg_margin,
        total_underbilled=total_underbilled,
        jobs_behind_schedule=behind,
        margin_tier=classify_margin(avg_margin),
        underbilled_tier=classify_underbilled(total_underbilled),
        schedule_tier=classify_behind_schedule(behind),
    )


def rank_project_managers(jobs: Iterable[JobRecord],
                          now: Instant,
                          config: Optional[EngineConfig] = None) -> List[PMScorecard]:
    """
    Score every PM group, most active jobs first.

    Ties keep the order in which each PM first appears in ``jobs``.
    """
    cards = [
        score_project_manager(pm, pm_jobs, now, config)
        for pm, pm_jobs in group_by_pm(jobs).items()
    ]
    return sorted(cards, key=lambda card: card.active_job_count, reverse=True)


def scorecard_frame(cards: List[PMScorecard]) -> pd.DataFrame:
    """Scorecards as a table, tiers as plain strings."""
    rows = []
    for card in cards:
        rows.append({
            "project_manager": card.project_manager,
            "job_count": card.job_count,
            "active_job_count": card.active_job_count,
            "avg_margin": card.avg_margin,
            "total_underbilled": card.total_underbilled,
            "jobs_behind_schedule": card.jobs_behind_schedule,
            "margin_tier": card.margin_tier.value,
            "underbilled_tier": card.underbilled_tier.value,
            "schedule_tier": card.schedule_tier.value,
        })
    return pd.DataFrame(rows, columns=[
        "project_manager", "job_count", "active_job_count", "avg_margin", "total_underbilled",
        "jobs_behind_schedule", "margin_tier", "underbilled_tier", "schedule_tier",
    ])
