"""
Tests for capacity rollups.
"""
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.data.models import CapacityPlan, CapacityRow
from wip_engine.metrics.capacity import (
    capacity_for_tenant,
    compute_capacity_summary,
    compute_capacity_table,
    compute_discipline_capacity,
    compute_row_capacity,
    get_overcommitted_rows,
    get_rows_with_headroom,
)


def _row(discipline, headcount, hours, committed, label=""):
    return CapacityRow(
        discipline=discipline,
        headcount=Decimal(headcount),
        hours_per_person=Decimal(hours),
        committed_hours=Decimal(committed),
        label=label,
    )


PLAN = CapacityPlan(
    planning_horizon_weeks=12,
    rows=(
        _row("Electrical", 4, 40, 120, "Crew A"),
        _row("Plumbing", 2, 40, 100),
        _row("Electrical", 1, 40, 0, "Crew B"),
    ),
)


class TestRowCapacity:

    def test_available_balance_utilization(self):
        totals = compute_row_capacity(_row("Electrical", 4, 40, 120))

        assert totals.available_hours == Decimal("160")
        assert totals.balance == Decimal("40")
        assert totals.utilization_pct == Decimal("75")

    def test_zero_available_has_zero_utilization(self):
        totals = compute_row_capacity(_row("Electrical", 0, 40, 10))

        assert totals.utilization_pct == 0
        assert totals.balance == Decimal("-10")


class TestCapacitySummary:

    def test_totals_recompute_utilization(self):
        summary = compute_capacity_summary(PLAN.rows)

        assert summary.available_hours == Decimal("280")
        assert summary.committed_hours == Decimal("220")
        assert summary.balance == Decimal("60")
        assert summary.utilization_pct == Decimal("220") * 100 / Decimal("280")

    def test_empty_plan(self):
        summary = compute_capacity_summary([])

        assert summary.available_hours == 0
        assert summary.utilization_pct == 0


class TestCapacityTables:

    def test_row_table(self):
        table = compute_capacity_table(PLAN)

        assert len(table) == 3
        assert list(table["balance"]) == [Decimal("40"), Decimal("-20"), Decimal("40")]

    def test_discipline_rollup_in_first_appearance_order(self):
        table = compute_discipline_capacity(PLAN)

        assert list(table["discipline"]) == ["Electrical", "Plumbing"]
        electrical = table.iloc[0]
        assert electrical["row_count"] == 2
        assert electrical["available_hours"] == Decimal("200")
        assert electrical["utilization_pct"] == Decimal("60")

    def test_discipline_rollup_sums_then_recomputes(self):
        plan = CapacityPlan(
            planning_horizon_weeks=4,
            rows=(
                _row("Survey", 1, 40, 10),
                _row("Civil", 2, 40, 100),
                _row("Survey", 1, 40, 70),
                _row("Civil", 0, 40, 0),
            ),
        )

        table = compute_discipline_capacity(plan)

        assert list(table["discipline"]) == ["Survey", "Civil"]
        assert list(table["row_count"]) == [2, 2]
        assert list(table["headcount"]) == [Decimal("2"), Decimal("2")]
        assert list(table["balance"]) == [Decimal("0"), Decimal("-20")]
        # 80 / 80, not the mean of 25% and 175%
        assert table.iloc[0]["utilization_pct"] == Decimal("100")
        assert table.iloc[1]["utilization_pct"] == Decimal("125")

    def test_discipline_without_capacity_has_zero_utilization(self):
        plan = CapacityPlan(planning_horizon_weeks=4, rows=(_row("Civil", 0, 40, 30),))

        assert compute_discipline_capacity(plan).iloc[0]["utilization_pct"] == 0

    def test_empty_plan_keeps_columns(self):
        table = compute_discipline_capacity(CapacityPlan(planning_horizon_weeks=4))

        assert table.empty
        assert "utilization_pct" in table.columns

    def test_overcommitted_rows(self):
        over = get_overcommitted_rows(PLAN)

        assert list(over["discipline"]) == ["Plumbing"]

    def test_headroom_rows(self):
        headroom = get_rows_with_headroom(PLAN, Decimal("10"))

        assert len(headroom) == 2
        assert set(headroom["label"]) == {"Crew A", "Crew B"}


class TestCapacityForTenant:

    def test_disabled_tenant_gets_nothing(self):
        assert capacity_for_tenant(PLAN, capacity_enabled=False) is None

    def test_missing_plan(self):
        assert capacity_for_tenant(None, capacity_enabled=True) is None

    def test_enabled_tenant(self):
        result = capacity_for_tenant(PLAN, capacity_enabled=True)

        assert result["planning_horizon_weeks"] == 12
        assert result["summary"].balance == Decimal("60")
        assert len(result["rows"]) == 3
