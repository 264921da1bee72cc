"""
Tests for the smart risk engines and the needs-attention queue.
"""
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.data.models import JobStatus
from wip_engine.modeling.risk import (
    RiskLevel,
    analyze_job_risk,
    attention_by_pm,
    build_attention_queue,
    calculate_margin_fade,
    calculate_schedule_drift,
    calculate_underbilling_risk,
)

NOW = date(2024, 7, 1)


class TestUnderbillingRisk:

    def test_levels(self, fixed_job):
        base = dict(contract=100000, budget=80000, costs=40000)

        assert calculate_underbilling_risk(fixed_job(invoiced=35000, **base)) == RiskLevel.HIGH
        assert calculate_underbilling_risk(fixed_job(invoiced=43000, **base)) == RiskLevel.MEDIUM
        assert calculate_underbilling_risk(fixed_job(invoiced=50000, **base)) == RiskLevel.LOW

    def test_no_contract(self, tm_job):
        assert calculate_underbilling_risk(tm_job(costs=1000)) == RiskLevel.NONE


class TestScheduleDrift:

    def _job(self, fixed_job, costs):
        return fixed_job(
            budget=100000, costs=costs,
            start_date=date(2024, 1, 1), end_date=date(2024, 12, 31),
        )

    def test_spending_behind_the_calendar(self, fixed_job):
        """Half the year gone, a fifth of the budget spent."""
        assert calculate_schedule_drift(self._job(fixed_job, 20000), NOW) == 16

    def test_small_drift_is_ignored(self, fixed_job):
        assert calculate_schedule_drift(self._job(fixed_job, 45000), NOW) == 0

    def test_spending_ahead_is_zero(self, fixed_job):
        assert calculate_schedule_drift(self._job(fixed_job, 90000), NOW) == 0

    def test_not_started(self, fixed_job):
        assert calculate_schedule_drift(self._job(fixed_job, 0), date(2023, 12, 1)) == 0

    def test_unscheduled_or_no_budget(self, fixed_job):
        assert calculate_schedule_drift(fixed_job(budget=100000), NOW) == 0
        job = fixed_job(budget=0, start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
        assert calculate_schedule_drift(job, NOW) == 0


class TestMarginFade:

    def test_fading_job(self, fixed_job):
        job = fixed_job(contract=100000, budget=80000, costs=60000, cost_to_complete=35000)

        fade = calculate_margin_fade(job)

        assert fade.is_fading is True
        assert fade.fade_percent == Decimal("15.0")

    def test_small_fade_is_not_flagged(self, fixed_job):
        job = fixed_job(contract=100000, budget=80000, costs=60000, cost_to_complete=21000)

        fade = calculate_margin_fade(job)

        assert fade.is_fading is False
        assert fade.fade_percent == Decimal("1.0")

    def test_no_contract(self, tm_job):
        fade = calculate_margin_fade(tm_job(costs=1000))

        assert fade.is_fading is False
        assert fade.fade_percent == 0

    def test_analysis_combines_engines(self, fixed_job):
        job = fixed_job(contract=100000, budget=80000, costs=60000, cost_to_complete=35000, invoiced=75000)

        analysis = analyze_job_risk(job, NOW)

        assert analysis.underbilling_risk == RiskLevel.LOW
        assert analysis.schedule_drift_weeks == 0
        assert analysis.is_margin_fading is True


class TestAttentionQueue:

    def _jobs(self, fixed_job):
        return [
            # Fading margin and 60% under-billed: two medium reasons
            fixed_job(id="fade", contract=100000, budget=80000, costs=60000, cost_to_complete=35000,
                      invoiced=30000, project_manager="Ben"),
            # 80% under-billed: one high reason
            fixed_job(id="under", contract=100000, budget=80000, costs=40000, invoiced=10000,
                      project_manager="Ana"),
            fixed_job(id="fine", contract=100000, budget=80000, costs=40000, cost_to_complete=40000,
                      invoiced=50000, project_manager="Ana"),
            fixed_job(id="closed", contract=100000, budget=80000, costs=40000, invoiced=0,
                      status=JobStatus.COMPLETED, project_manager="Ana"),
            fixed_job(id="paused", contract=100000, budget=80000, costs=40000, invoiced=15000,
                      status=JobStatus.ON_HOLD, project_manager="Ben"),
        ]

    def test_ordering_and_scope(self, fixed_job):
        queue = build_attention_queue(self._jobs(fixed_job), NOW)

        assert [item.job.id for item in queue] == ["under", "fade", "paused"]

    def test_reasons(self, fixed_job):
        queue = {item.job.id: item for item in build_attention_queue(self._jobs(fixed_job), NOW)}

        under = queue["under"]
        assert [r.type for r in under.reasons] == ["underbilling"]
        assert under.reasons[0].severity == "high"
        assert under.reasons[0].message == "Underbilled 80%"
        assert under.profit_variance == Decimal("40000")

        fade = queue["fade"]
        assert [r.type for r in fade.reasons] == ["underbilling", "margin-fade"]
        assert all(r.severity == "medium" for r in fade.reasons)
        assert fade.reasons[1].message == "Margin fading: -15.0 pts"

    def test_pm_breakdown(self, fixed_job):
        queue = build_attention_queue(self._jobs(fixed_job), NOW)

        assert attention_by_pm(queue) == [("Ben", 2), ("Ana", 1)]
