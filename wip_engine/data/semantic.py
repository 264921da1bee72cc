"""
Semantic layer: money arithmetic, breakdown sums, and job filters.

CRITICAL: All currency math must go through these helpers so every
rollup stays in Decimal.
"""
import numbers
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Union

from wip_engine.config import UNASSIGNED_PM
from wip_engine.data.models import CostBreakdown, JobRecord, JobStatus


ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


# =============================================================================
# MONEY
# =============================================================================

def to_money(value: Number) -> Decimal:
    """
    Convert a numeric value to Decimal without binary float artefacts.

    Floats go through ``str`` so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("booleans are not currency amounts")
    # numpy scalars register as Integral / Real but are not int / float
    if isinstance(value, numbers.Integral):
        return Decimal(int(value))
    if isinstance(value, numbers.Real):
        return Decimal(str(float(value)))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Quantize to cents for display. Engine math keeps full precision."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide, returning 0 for a zero or negative denominator."""
    if denominator <= 0:
        return ZERO
    return numerator / denominator


def percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, 0 when the denominator is not positive."""
    return safe_divide(numerator * HUNDRED, denominator)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


# =============================================================================
# BREAKDOWN ARITHMETIC
# =============================================================================

def sum_breakdown(breakdown: CostBreakdown) -> Decimal:
    """labor + material + other. Negative parts pass through unchanged."""
    return breakdown.labor + breakdown.material + breakdown.other


def add_breakdowns(a: CostBreakdown, b: CostBreakdown) -> CostBreakdown:
    return CostBreakdown(
        labor=a.labor + b.labor,
        material=a.material + b.material,
        other=a.other + b.other,
    )


# =============================================================================
# FILTERS
# =============================================================================

def pm_name(job: JobRecord) -> str:
    """Project manager bucket for a job; blank names go to Unassigned."""
    name = (job.project_manager or "").strip()
    return name or UNASSIGNED_PM


def matches_search(job: JobRecord, term: str) -> bool:
    """Case-insensitive match on job name, number, client or PM."""
    needle = term.strip().lower()
    if not needle:
        return True
    haystack = [job.job_name, job.job_no, job.client, job.project_manager]
    return any(needle in (value or "").lower() for value in haystack)


def filter_jobs(jobs: Iterable[JobRecord],
                status: Optional[Union[JobStatus, Iterable[JobStatus]]] = None,
                project_manager: Optional[str] = None,
                search: Optional[str] = None) -> List[JobRecord]:
    """
    Compose status / PM / search predicates over a job collection.

    ``project_manager`` matches the bucket name, so "Unassigned" selects
    jobs without a PM.
    """
    if isinstance(status, JobStatus):
        statuses = {status}
    elif status is not None:
        statuses = set(status)
    else:
        statuses = None

    result = []
    for job in jobs:
        if statuses is not None and job.status not in statuses:
            continue
        if project_manager and pm_name(job) != project_manager:
            continue
        if search and not matches_search(job, search):
            continue
        result.append(job)
    return result


def jobs_with_status(jobs: Iterable[JobRecord], *statuses: JobStatus) -> List[JobRecord]:
    return [job for job in jobs if job.status in statuses]


def as_date(instant: Union[date, datetime]) -> date:
    """Calendar date of an instant (dates pass through)."""
    return instant.date() if isinstance(instant, datetime) else instant
