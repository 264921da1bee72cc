"""
Capacity metrics pack.

Single source of truth for: available hours, committed hours, balance,
utilization per staffing row, per discipline and for the whole plan.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional

import pandas as pd

from wip_engine.data.models import CapacityPlan, CapacityRow
from wip_engine.data.semantic import ZERO, percent, sum_money
from wip_engine.logging_config import get_logger

logger = get_logger("metrics.capacity")


@dataclass(frozen=True)
class CapacityTotals:
    available_hours: Decimal
    committed_hours: Decimal
    balance: Decimal
    utilization_pct: Decimal


def _totals(available: Decimal, committed: Decimal) -> CapacityTotals:
    # Utilization is not additive: always recompute it from summed hours
    return CapacityTotals(
        available_hours=available,
        committed_hours=committed,
        balance=available - committed,
        utilization_pct=percent(committed, available),
    )


def compute_row_capacity(row: CapacityRow) -> CapacityTotals:
    """
    available = headcount * hours_per_person
    balance = available - committed
    utilization = committed / available * 100 (0 with nothing available)
    """
    return _totals(row.available_hours, row.committed_hours)


def compute_capacity_summary(rows: Iterable[CapacityRow]) -> CapacityTotals:
    """Plan totals. A plan without rows has zero capacity."""
    rows = list(rows)
    return _totals(
        sum_money(row.available_hours for row in rows),
        sum_money(row.committed_hours for row in rows),
    )


def compute_capacity_table(plan: CapacityPlan) -> pd.DataFrame:
    """
    One row per staffing row with derived hours.

    Returns DataFrame with:
    - available_hours: headcount * hours_per_person
    - balance: available_hours - committed_hours
    - utilization_pct: committed / available * 100
    """
    records = []
    for row in plan.rows:
        totals = compute_row_capacity(row)
        records.append({
            "id": row.id,
            "discipline": row.discipline,
            "label": row.label,
            "headcount": row.headcount,
            "hours_per_person": row.hours_per_person,
            "available_hours": totals.available_hours,
            "committed_hours": totals.committed_hours,
            "balance": totals.balance,
            "utilization_pct": totals.utilization_pct,
        })
    return pd.DataFrame(records, columns=[
        "id", "discipline", "label", "headcount", "hours_per_person",
        "available_hours", "committed_hours", "balance", "utilization_pct",
    ])


def compute_discipline_capacity(plan: CapacityPlan) -> pd.DataFrame:
    """
    Capacity rolled up by discipline, in first-appearance order.
    """
    columns = [
        "discipline", "row_count", "headcount", "available_hours",
        "committed_hours", "balance", "utilization_pct",
    ]
    table = compute_capacity_table(plan)

    if len(table) == 0:
        return pd.DataFrame(columns=columns)

    result = table.groupby("discipline", sort=False).agg(
        row_count=("id", "size"),
        headcount=("headcount", "sum"),
        available_hours=("available_hours", "sum"),
        committed_hours=("committed_hours", "sum"),
    ).reset_index()

    # Utilization is not additive: recompute from the summed hours
    result["balance"] = result["available_hours"] - result["committed_hours"]
    result["utilization_pct"] = [
        percent(committed, available)
        for committed, available in zip(result["committed_hours"], result["available_hours"])
    ]

    return result[columns]


def get_rows_with_headroom(plan: CapacityPlan, min_balance: Decimal = ZERO) -> pd.DataFrame:
    """
    Get staffing rows with at least ``min_balance`` uncommitted hours.
    """
    table = compute_capacity_table(plan)
    return table[table["balance"] >= min_balance].sort_values("balance", ascending=False)


def get_overcommitted_rows(plan: CapacityPlan) -> pd.DataFrame:
    """
    Get staffing rows with negative balance (overcommitted).
    """
    table = compute_capacity_table(plan)
    return table[table["balance"] < 0].sort_values("balance")


def capacity_for_tenant(plan: Optional[CapacityPlan], capacity_enabled: bool) -> Optional[Dict]:
    """
    Capacity output for a tenant, or None when capacity is switched off.

    The balancer is not run at all for disabled tenants.
    """
    if not capacity_enabled or plan is None:
        return None

    logger.debug("computing capacity", extra={"rows": len(plan.rows)})
    return {
        "planning_horizon_weeks": plan.planning_horizon_weeks,
        "summary": compute_capacity_summary(plan.rows),
        "rows": compute_capacity_table(plan),
        "disciplines": compute_discipline_capacity(plan),
    }
