"""
Tests for the portfolio health score.
"""
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.config import EngineConfig
from wip_engine.data.models import JobStatus
from wip_engine.metrics.health import compute_portfolio_health, health_grade


class TestHealthGrade:

    def test_cutoffs(self):
        assert health_grade(100) == "A"
        assert health_grade(90) == "A"
        assert health_grade(89) == "B"
        assert health_grade(70) == "C"
        assert health_grade(60) == "D"
        assert health_grade(59) == "F"


class TestPortfolioHealth:

    def test_empty_portfolio_is_perfect(self):
        health = compute_portfolio_health([])

        assert health.score == 100
        assert health.grade == "A"
        assert health.job_count == 0

    def test_only_live_jobs_count(self, fixed_job):
        jobs = [
            fixed_job(contract=100000, budget=80000, costs=40000, cost_to_complete=40000, invoiced=50000),
            fixed_job(contract=100000, budget=80000, costs=40000, invoiced=0, status=JobStatus.COMPLETED),
        ]

        health = compute_portfolio_health(jobs)

        assert health.job_count == 1
        assert health.score == 100

    def test_deductions(self, fixed_job):
        jobs = [
            # Under-billed, on plan
            fixed_job(contract=100000, budget=80000, costs=40000, cost_to_complete=40000, invoiced=30000),
            # Over-billed, 10 points of margin lost, two months late
            fixed_job(contract=100000, budget=80000, costs=40000, cost_to_complete=50000, invoiced=60000,
                      end_date=date(2024, 5, 1), target_end_date=date(2024, 3, 1)),
        ]

        health = compute_portfolio_health(jobs)

        assert health.underbilled_pct == Decimal("50")
        assert health.avg_margin_variance == Decimal("-5")
        assert health.behind_schedule_pct == Decimal("50")
        # 100 - 20 - 15 - 15
        assert health.score == 50
        assert health.grade == "F"

    def test_slack_from_config(self, fixed_job):
        jobs = [
            fixed_job(contract=100000, budget=80000, costs=40000, cost_to_complete=40000, invoiced=50000,
                      end_date=date(2024, 5, 1), target_end_date=date(2024, 3, 1)),
        ]

        strict = compute_portfolio_health(jobs)
        relaxed = compute_portfolio_health(jobs, EngineConfig(schedule_slack_days=90))

        assert strict.score == 70
        assert relaxed.score == 100
