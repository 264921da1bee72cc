"""
Tests for money helpers and job filters.
"""
import numpy as np
import pytest
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.data.models import JobStatus
from wip_engine.data.semantic import (
    filter_jobs,
    jobs_with_status,
    percent,
    pm_name,
    round_money,
    safe_divide,
    to_money,
)


class TestMoney:

    def test_float_goes_through_str(self):
        assert to_money(0.1) == Decimal("0.1")

    def test_numpy_scalars(self):
        assert to_money(np.int64(7)) == Decimal("7")
        assert to_money(np.float64(2.5)) == Decimal("2.5")

    def test_booleans_rejected(self):
        with pytest.raises(TypeError):
            to_money(True)

    def test_safe_divide_non_positive_denominator(self):
        assert safe_divide(Decimal("10"), Decimal("0")) == 0
        assert safe_divide(Decimal("10"), Decimal("-5")) == 0
        assert percent(Decimal("1"), Decimal("4")) == Decimal("25")

    def test_round_money_half_up(self):
        assert round_money(Decimal("1.005")) == Decimal("1.01")


class TestFilters:

    def _jobs(self, fixed_job):
        return [
            fixed_job(job_name="Harbor Tower", client="Acme", project_manager="Ana"),
            fixed_job(job_name="School Gym", client="District 9", project_manager="Ben",
                      status=JobStatus.FUTURE),
            fixed_job(job_name="Depot", client="Acme", project_manager="", status=JobStatus.COMPLETED),
        ]

    def test_status_filter(self, fixed_job):
        jobs = self._jobs(fixed_job)

        assert len(filter_jobs(jobs, status=JobStatus.ACTIVE)) == 1
        assert len(filter_jobs(jobs, status=[JobStatus.ACTIVE, JobStatus.FUTURE])) == 2

    def test_pm_filter_uses_unassigned_bucket(self, fixed_job):
        result = filter_jobs(self._jobs(fixed_job), project_manager="Unassigned")

        assert [job.job_name for job in result] == ["Depot"]

    def test_search_is_case_insensitive(self, fixed_job):
        result = filter_jobs(self._jobs(fixed_job), search="acme")

        assert [job.job_name for job in result] == ["Harbor Tower", "Depot"]

    def test_filters_compose(self, fixed_job):
        result = filter_jobs(self._jobs(fixed_job), status=JobStatus.COMPLETED, search="acme")

        assert [job.job_name for job in result] == ["Depot"]

    def test_no_filters_keeps_everything(self, fixed_job):
        jobs = self._jobs(fixed_job)

        assert filter_jobs(jobs) == jobs

    def test_helpers(self, fixed_job):
        jobs = self._jobs(fixed_job)

        assert pm_name(jobs[2]) == "Unassigned"
        assert len(jobs_with_status(jobs, JobStatus.FUTURE, JobStatus.COMPLETED)) == 2
