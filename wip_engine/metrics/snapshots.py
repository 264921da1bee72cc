"""
WIP-week snapshots and period-over-period deltas.

The caller owns the snapshot: it passes the previous one in and persists
whatever ``evaluate_snapshot`` hands back. Nothing here stores state.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Union

import pandas as pd

from wip_engine.config import WEEK_DAYS
from wip_engine.data.models import JobRecord, JobsSnapshot
from wip_engine.data.semantic import ZERO, as_date, percent
from wip_engine.metrics.earned_value import calculate_earned_value
from wip_engine.metrics.portfolio import net_billing_position, total_earned_revenue
from wip_engine.logging_config import get_logger

logger = get_logger("metrics.snapshots")

Instant = Union[date, datetime]


@dataclass(frozen=True)
class SnapshotDecision:
    due_for_replacement: bool
    new_snapshot: Optional[JobsSnapshot] = None


@dataclass(frozen=True)
class SnapshotDelta:
    snapshot_timestamp: Optional[datetime]
    current_earned_revenue: Decimal
    previous_earned_revenue: Decimal
    earned_revenue_change: Decimal
    earned_revenue_change_pct: Decimal
    current_net_billing: Decimal
    previous_net_billing: Decimal
    # Positive: moving toward over-billed; negative: falling further under-billed
    billing_trend: Decimal


def _weekday_index(week_end_day: str) -> int:
    names = [day.lower() for day in WEEK_DAYS]
    key = week_end_day.strip().lower()
    if key not in names:
        raise ValueError(f"unknown week end day {week_end_day!r}")
    return names.index(key)


def _local_date(instant: Instant, reference: Instant) -> date:
    """Calendar date of ``instant`` in the timezone of ``reference``."""
    if (isinstance(instant, datetime) and isinstance(reference, datetime)
            and instant.tzinfo is not None and reference.tzinfo is not None):
        instant = instant.astimezone(reference.tzinfo)
    return as_date(instant)


def wip_week_start(instant: Instant, week_end_day: str) -> date:
    """
    First calendar day of the WIP week containing ``instant``.

    The week starts the day after ``week_end_day``: with a Friday week
    end, weeks run Saturday through Friday.
    """
    start_index = (_weekday_index(week_end_day) + 1) % 7
    day = as_date(instant)
    return day - timedelta(days=(day.weekday() - start_index) % 7)


def evaluate_snapshot(previous: Optional[JobsSnapshot],
                      jobs: Iterable[JobRecord],
                      now: datetime,
                      week_end_day: str) -> SnapshotDecision:
    """
    Decide whether a new snapshot is due.

    - no snapshot: take one now
    - snapshot from the current WIP week: nothing to do
    - snapshot from an earlier WIP week: replace it

    Same inputs always give the same decision.
    """
    if previous is not None:
        current_week = wip_week_start(now, week_end_day)
        snapshot_week = wip_week_start(_local_date(previous.timestamp, now), week_end_day)
        if snapshot_week >= current_week:
            return SnapshotDecision(due_for_replacement=False)

    logger.debug(
        "snapshot due",
        extra={"previous": previous.timestamp if previous is not None else None, "now": now},
    )
    return SnapshotDecision(
        due_for_replacement=True,
        new_snapshot=JobsSnapshot(timestamp=now, jobs=tuple(jobs)),
    )


def compute_snapshot_delta(jobs: Iterable[JobRecord],
                           snapshot: Optional[JobsSnapshot]) -> SnapshotDelta:
    """
    Earned revenue and billing movement since the snapshot.

    Without a snapshot the previous values are 0.
    """
    jobs = list(jobs)
    previous_jobs = snapshot.jobs if snapshot is not None else ()

    current_earned = total_earned_revenue(jobs)
    previous_earned = total_earned_revenue(previous_jobs)
    current_billing = net_billing_position(jobs)
    previous_billing = net_billing_position(previous_jobs)

    change = current_earned - previous_earned
    return SnapshotDelta(
        snapshot_timestamp=snapshot.timestamp if snapshot is not None else None,
        current_earned_revenue=current_earned,
        previous_earned_revenue=previous_earned,
        earned_revenue_change=change,
        earned_revenue_change_pct=percent(change, previous_earned),
        current_net_billing=current_billing,
        previous_net_billing=previous_billing,
        billing_trend=current_billing - previous_billing,
    )


def build_weekly_breakdown(jobs: Iterable[JobRecord],
                           snapshot: Optional[JobsSnapshot]) -> pd.DataFrame:
    """
    Per-job earned revenue against the snapshot, biggest gain first.

    Jobs are matched by id; a job missing from the snapshot started at 0.
    """
    previous = {}
    if snapshot is not None:
        previous = {job.id: calculate_earned_value(job).earned_revenue for job in snapshot.jobs}

    rows = []
    for job in jobs:
        earned = calculate_earned_value(job).earned_revenue
        before = previous.get(job.id, ZERO)
        rows.append({
            "id": job.id,
            "job_no": job.job_no,
            "job_name": job.job_name,
            "client": job.client,
            "project_manager": job.project_manager,
            "earned_revenue": earned,
            "previous_earned_revenue": before,
            "change": earned - before,
        })
    rows.sort(key=lambda row: row["change"], reverse=True)

    return pd.DataFrame(rows, columns=[
        "id", "job_no", "job_name", "client", "project_manager",
        "earned_revenue", "previous_earned_revenue", "change",
    ])
