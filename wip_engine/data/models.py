"""
Job ledger records and capacity plan shapes consumed by the engine.

Records are frozen: the engine only ever reads them. Status changes go
through ``with_status`` which returns a new record.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Tuple

from wip_engine.config import DEFAULT_TM_MARKUPS


class JobStatus(str, Enum):
    DRAFT = "Draft"
    FUTURE = "Future"
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"


class JobType(str, Enum):
    FIXED_PRICE = "fixed-price"
    TIME_AND_MATERIAL = "time-material"


class LaborBillingType(str, Enum):
    MARKUP = "markup"
    FIXED_RATE = "fixed-rate"


@dataclass(frozen=True)
class CostBreakdown:
    """Three-way labor / material / other split of a currency amount."""
    labor: Decimal = Decimal("0")
    material: Decimal = Decimal("0")
    other: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.labor + self.material + self.other


ZERO_BREAKDOWN = CostBreakdown()


@dataclass(frozen=True)
class MobilizationPhase:
    """One mobilize/demobilize window of a job (up to four per job)."""
    id: int
    enabled: bool = True
    mobilize_date: Optional[date] = None
    demobilize_date: Optional[date] = None
    description: str = ""


@dataclass(frozen=True)
class TMSettings:
    """Billing settings for a time-and-material job."""
    labor_billing_type: LaborBillingType = LaborBillingType.MARKUP
    labor_markup: Optional[Decimal] = None
    labor_bill_rate: Optional[Decimal] = None
    labor_hours: Optional[Decimal] = None
    material_markup: Optional[Decimal] = None
    other_markup: Optional[Decimal] = None


def default_tm_settings() -> TMSettings:
    """Settings applied to newly created T&M jobs."""
    return TMSettings(
        labor_billing_type=LaborBillingType.MARKUP,
        labor_markup=DEFAULT_TM_MARKUPS["labor_markup"],
        material_markup=DEFAULT_TM_MARKUPS["material_markup"],
        other_markup=DEFAULT_TM_MARKUPS["other_markup"],
    )


@dataclass(frozen=True)
class JobRecord:
    """
    One job's ledger.

    Dates are ``None`` while unscheduled. ``on_hold_date`` is set only
    while the job is On Hold.
    """
    job_type: ClassVar[JobType]

    id: str
    job_no: str
    job_name: str
    status: JobStatus
    contract: CostBreakdown
    budget: CostBreakdown
    invoiced: CostBreakdown
    costs: CostBreakdown
    cost_to_complete: CostBreakdown
    client: str = ""
    project_manager: str = ""
    estimator: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_end_date: Optional[date] = None
    on_hold_date: Optional[datetime] = None
    target_profit: Optional[Decimal] = None
    target_margin: Optional[Decimal] = None
    last_updated: Optional[datetime] = None
    mobilizations: Tuple[MobilizationPhase, ...] = ()


@dataclass(frozen=True)
class FixedPriceJob(JobRecord):
    job_type: ClassVar[JobType] = JobType.FIXED_PRICE


@dataclass(frozen=True)
class TimeAndMaterialJob(JobRecord):
    job_type: ClassVar[JobType] = JobType.TIME_AND_MATERIAL

    tm_settings: Optional[TMSettings] = None


JOB_CLASSES = {
    JobType.FIXED_PRICE: FixedPriceJob,
    JobType.TIME_AND_MATERIAL: TimeAndMaterialJob,
}


def with_status(job: JobRecord, status: JobStatus, now: datetime) -> JobRecord:
    """
    Return a copy of ``job`` moved to ``status``.

    Entering On Hold stamps ``on_hold_date`` with ``now``; leaving it
    clears the stamp.
    """
    if status == job.status:
        return job

    on_hold_date = job.on_hold_date
    if status == JobStatus.ON_HOLD:
        on_hold_date = now
    elif job.status == JobStatus.ON_HOLD:
        on_hold_date = None

    return replace(job, status=status, on_hold_date=on_hold_date, last_updated=now)


class ChangeOrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ChangeOrder:
    """
    Contract change against a parent job, with its own ledger.

    ``co_type`` is independent of the parent job's type.
    """
    id: str
    job_id: str
    status: ChangeOrderStatus
    contract: CostBreakdown
    budget: CostBreakdown
    invoiced: CostBreakdown
    costs: CostBreakdown
    cost_to_complete: CostBreakdown
    co_number: int = 0
    description: str = ""
    co_type: JobType = JobType.FIXED_PRICE
    tm_settings: Optional[TMSettings] = None
    submitted_date: Optional[date] = None
    approved_date: Optional[date] = None
    completed_date: Optional[date] = None


@dataclass(frozen=True)
class CapacityRow:
    discipline: str
    headcount: Decimal
    hours_per_person: Decimal
    committed_hours: Decimal
    label: str = ""
    id: str = ""

    @property
    def available_hours(self) -> Decimal:
        return self.headcount * self.hours_per_person


@dataclass(frozen=True)
class CapacityPlan:
    planning_horizon_weeks: int
    rows: Tuple[CapacityRow, ...] = field(default_factory=tuple)
    notes: Optional[str] = None
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class JobsSnapshot:
    """Point-in-time copy of the job set, taken at most once per WIP week."""
    timestamp: datetime
    jobs: Tuple[JobRecord, ...] = field(default_factory=tuple)
