"""
Shared job factories for engine tests.
"""
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.data.models import (
    ChangeOrder,
    ChangeOrderStatus,
    CostBreakdown,
    FixedPriceJob,
    JobStatus,
    TimeAndMaterialJob,
)


def breakdown(labor=0, material=0, other=0) -> CostBreakdown:
    return CostBreakdown(
        labor=Decimal(str(labor)),
        material=Decimal(str(material)),
        other=Decimal(str(other)),
    )


def _as_breakdown(value) -> CostBreakdown:
    if isinstance(value, CostBreakdown):
        return value
    # Plain totals go into labor
    return breakdown(labor=value)


_counter = {"next": 0}


def _job(cls, **overrides):
    _counter["next"] += 1
    n = _counter["next"]
    fields = dict(
        id=f"job-{n}",
        job_no=f"J{n:04d}",
        job_name=f"Job {n}",
        status=JobStatus.ACTIVE,
        contract=0,
        budget=0,
        invoiced=0,
        costs=0,
        cost_to_complete=0,
    )
    fields.update(overrides)
    for name in ["contract", "budget", "invoiced", "costs", "cost_to_complete"]:
        fields[name] = _as_breakdown(fields[name])
    if fields["status"] == JobStatus.ON_HOLD and "on_hold_date" not in overrides:
        fields["on_hold_date"] = datetime(2024, 1, 1)
    return cls(**fields)


@pytest.fixture
def fixed_job():
    """Factory for FixedPriceJob; breakdown fields accept plain totals."""
    def make(**overrides):
        return _job(FixedPriceJob, **overrides)
    return make


@pytest.fixture
def tm_job():
    """Factory for TimeAndMaterialJob; breakdown fields accept plain totals."""
    def make(**overrides):
        return _job(TimeAndMaterialJob, **overrides)
    return make


@pytest.fixture
def change_order():
    """Factory for approved ChangeOrder; breakdown fields accept plain totals."""
    def make(job_id, **overrides):
        _counter["next"] += 1
        n = _counter["next"]
        fields = dict(
            id=f"co-{n}",
            job_id=job_id,
            status=ChangeOrderStatus.APPROVED,
            contract=0,
            budget=0,
            invoiced=0,
            costs=0,
            cost_to_complete=0,
        )
        fields.update(overrides)
        for name in ["contract", "budget", "invoiced", "costs", "cost_to_complete"]:
            fields[name] = _as_breakdown(fields[name])
        return ChangeOrder(**fields)
    return make


@pytest.fixture
def today():
    return date(2024, 6, 14)
