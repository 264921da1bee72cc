"""
Engine configuration and product policy constants.
"""
import os
from dataclasses import dataclass, field
from decimal import Decimal


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass
class EngineConfig:
    """Engine configuration with environment overrides."""

    # Environment
    app_env: str = field(default_factory=lambda: os.getenv("APP_ENV", "dev"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # A job is behind schedule once its end date slips past target by more than this
    schedule_slack_days: int = field(default_factory=lambda: _env_int("SCHEDULE_SLACK_DAYS", 14))

    # Tenant default for the WIP-week boundary
    week_end_day: str = field(default_factory=lambda: os.getenv("WEEK_END_DAY", "Friday"))

    @property
    def is_prod(self) -> bool:
        return self.app_env.lower() == "prod"


# Global config instance
config = EngineConfig()


# Sentinel strings that mean "no date scheduled yet"
UNSCHEDULED_MARKERS = ("unscheduled", "tbd", "")

UNASSIGNED_PM = "Unassigned"

WEEK_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# =============================================================================
# SCORECARD TIERS
# =============================================================================
SCORECARD_MARGIN_GOOD = Decimal("20")
SCORECARD_MARGIN_WARNING = Decimal("10")
SCORECARD_UNDERBILLED_WARNING_LIMIT = Decimal("50000")
SCORECARD_BEHIND_WARNING_COUNT = 1
SCORECARD_BEHIND_CRITICAL_COUNT = 2

# Average active jobs per PM
PM_LOAD_WARNING = Decimal("3")
PM_LOAD_CRITICAL = Decimal("4.5")

# =============================================================================
# RISK ENGINES
# =============================================================================
UNDERBILLING_RISK_HIGH = Decimal("-0.10")
UNDERBILLING_RISK_MEDIUM = Decimal("-0.05")
SCHEDULE_DRIFT_MIN_RATIO = Decimal("0.1")
MARGIN_FADE_ALERT_POINTS = Decimal("2")

# Needs-attention queue: (trigger, high severity)
ATTENTION_UNDERBILLING_PCT = (Decimal("50"), Decimal("75"))
ATTENTION_MARGIN_FADE_POINTS = (Decimal("10"), Decimal("20"))
ATTENTION_SCHEDULE_DRIFT_WEEKS = (2, 4)

# Schedule warnings: days past contract end / target end before "critical"
MOBILIZATION_CRITICAL_DAYS = 14
BEHIND_TARGET_CRITICAL_DAYS = 30

# Change order statuses that fold into job totals
APPROVED_CHANGE_ORDER_STATUSES = ["approved", "completed"]

# =============================================================================
# PORTFOLIO HEALTH
# =============================================================================
HEALTH_UNDERBILLED_WEIGHT = Decimal("0.4")
HEALTH_UNDERBILLED_CAP = Decimal("40")
HEALTH_MARGIN_WEIGHT = Decimal("3")
HEALTH_MARGIN_CAP = Decimal("30")
HEALTH_SCHEDULE_WEIGHT = Decimal("0.3")
HEALTH_SCHEDULE_CAP = Decimal("30")
HEALTH_GRADES = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

# T&M defaults for new jobs: 50% labor, 15% material, 10% other markup
DEFAULT_TM_MARKUPS = {
    "labor_markup": Decimal("1.5"),
    "material_markup": Decimal("1.15"),
    "other_markup": Decimal("1.10"),
}

# =============================================================================
# RECORD SHAPES
# =============================================================================
BREAKDOWN_FIELDS = ["labor", "material", "other"]

# Required fields (hard fail if missing)
REQUIRED_FIELDS = {
    "job": [
        "id",
        "jobNo",
        "jobName",
        "status",
        "contract",
        "budget",
        "invoiced",
        "costs",
        "costToComplete",
    ],
    "capacity_row": [
        "discipline",
        "headcount",
        "hoursPerPerson",
        "committedHours",
    ],
    "capacity_plan": [
        "planningHorizonWeeks",
        "rows",
    ],
    "change_order": [
        "id",
        "jobId",
        "status",
        "contract",
        "budget",
        "invoiced",
        "costs",
        "costToComplete",
    ],
    "snapshot": [
        "timestamp",
        "jobs",
    ],
}

# Flattened job tables (one row per job, breakdowns as <name>_<part>)
REQUIRED_COLUMNS = {
    "jobs": ["id", "job_no", "job_name", "status"] + [
        f"{name}_{part}"
        for name in ["contract", "budget", "invoiced", "costs", "cost_to_complete"]
        for part in BREAKDOWN_FIELDS
    ],
}

# Optional columns (soft warn if missing)
OPTIONAL_COLUMNS = {
    "jobs": [
        "job_type",
        "client",
        "project_manager",
        "estimator",
        "start_date",
        "end_date",
        "target_end_date",
        "on_hold_date",
        "target_profit",
        "target_margin",
        "last_updated",
    ],
}
