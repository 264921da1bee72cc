"""
Record validation and parsing into engine types.

Degenerate numbers are the engine's problem and get defined fallbacks.
Malformed shapes are not: they raise so corrupt records can be flagged
instead of showing misleading figures.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from wip_engine.config import (
    BREAKDOWN_FIELDS,
    OPTIONAL_COLUMNS,
    REQUIRED_COLUMNS,
    REQUIRED_FIELDS,
    UNSCHEDULED_MARKERS,
)
from wip_engine.data.models import (
    JOB_CLASSES,
    CapacityPlan,
    CapacityRow,
    ChangeOrder,
    ChangeOrderStatus,
    CostBreakdown,
    JobRecord,
    JobsSnapshot,
    JobStatus,
    JobType,
    LaborBillingType,
    MobilizationPhase,
    TMSettings,
)
from wip_engine.data.semantic import to_money
from wip_engine.logging_config import get_logger

logger = get_logger("data.schema")


class SchemaValidationError(Exception):
    """Raised when required columns are missing."""
    pass


class RecordValidationError(ValueError):
    """Raised when a record has a missing field or a value of the wrong shape."""

    def __init__(self, message: str, record_id: Optional[str] = None, field: Optional[str] = None):
        self.record_id = record_id
        self.field = field
        prefix = f"record {record_id!r}: " if record_id else ""
        super().__init__(prefix + message)


@dataclass
class ParseResult:
    """Parsed jobs plus the errors of records that could not be parsed."""
    jobs: List[JobRecord] = field(default_factory=list)
    errors: List[RecordValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


# =============================================================================
# TABLE VALIDATION
# =============================================================================

def validate_required_columns(df: pd.DataFrame, table_name: str) -> Tuple[bool, List[str]]:
    """
    Validate that required columns exist in dataframe.
    Returns (is_valid, missing_columns).
    """
    if table_name not in REQUIRED_COLUMNS:
        return True, []

    required = REQUIRED_COLUMNS[table_name]
    missing = [col for col in required if col not in df.columns]

    return len(missing) == 0, missing


def check_optional_columns(df: pd.DataFrame, table_name: str) -> List[str]:
    """
    Check which optional columns are missing.
    Returns list of missing optional columns.
    """
    if table_name not in OPTIONAL_COLUMNS:
        return []

    optional = OPTIONAL_COLUMNS[table_name]
    return [col for col in optional if col not in df.columns]


def validate_schema(df: pd.DataFrame, table_name: str, strict: bool = True) -> Dict:
    """
    Full schema validation.

    Args:
        df: DataFrame to validate
        table_name: Name of table for column requirements lookup
        strict: If True, raise error on missing required columns

    Returns:
        Dict with validation results
    """
    is_valid, missing_required = validate_required_columns(df, table_name)
    missing_optional = check_optional_columns(df, table_name)

    result = {
        "is_valid": is_valid,
        "missing_required": missing_required,
        "missing_optional": missing_optional,
        "total_columns": len(df.columns),
        "total_rows": len(df),
    }

    if strict and not is_valid:
        raise SchemaValidationError(
            f"Missing required columns in {table_name}: {missing_required}"
        )

    if missing_optional:
        logger.debug("optional columns missing", extra={"table": table_name, "columns": missing_optional})

    return result


# =============================================================================
# FIELD PARSERS
# =============================================================================

def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    return isinstance(value, float) and math.isnan(value)


def _lookup(record: Mapping[str, Any], name: str) -> Any:
    """Read ``name`` in camelCase or snake_case form."""
    if name in record:
        return record[name]
    return record.get(_snake(name))


def _has(record: Mapping[str, Any], name: str) -> bool:
    return name in record or _snake(name) in record


def _require(record: Mapping[str, Any], kind: str, record_id: Optional[str]) -> None:
    for name in REQUIRED_FIELDS[kind]:
        if not _has(record, name) or _is_missing(_lookup(record, name)):
            raise RecordValidationError(f"missing required field {name!r}", record_id, name)


def parse_amount(value: Any, name: str, record_id: Optional[str] = None) -> Decimal:
    if _is_missing(value):
        raise RecordValidationError(f"{name} is missing", record_id, name)
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise RecordValidationError(f"{name} is not a number: {value!r}", record_id, name)
    if not amount.is_finite():
        raise RecordValidationError(f"{name} is not finite: {value!r}", record_id, name)
    return amount


def _optional_amount(value: Any, name: str, record_id: Optional[str]) -> Optional[Decimal]:
    if _is_missing(value) or value == "":
        return None
    return parse_amount(value, name, record_id)


def parse_breakdown(value: Any, name: str, record_id: Optional[str] = None) -> CostBreakdown:
    """Parse a {labor, material, other} mapping; every part is required."""
    if isinstance(value, CostBreakdown):
        return value
    if not isinstance(value, Mapping):
        raise RecordValidationError(f"{name} must be a breakdown mapping, got {type(value).__name__}", record_id, name)

    parts = {}
    for part in BREAKDOWN_FIELDS:
        if part not in value:
            raise RecordValidationError(f"{name} is missing {part!r}", record_id, f"{name}.{part}")
        parts[part] = parse_amount(value[part], f"{name}.{part}", record_id)
    return CostBreakdown(**parts)


def _normalise_token(value: str) -> str:
    return re.sub(r"[\s_\-]", "", value).lower()


_STATUS_LOOKUP = {}
for _status in JobStatus:
    _STATUS_LOOKUP[_normalise_token(_status.value)] = _status
    _STATUS_LOOKUP[_normalise_token(_status.name)] = _status

_JOB_TYPE_LOOKUP = {
    "fixedprice": JobType.FIXED_PRICE,
    "fixed": JobType.FIXED_PRICE,
    "timematerial": JobType.TIME_AND_MATERIAL,
    "timeandmaterial": JobType.TIME_AND_MATERIAL,
    "tm": JobType.TIME_AND_MATERIAL,
    "t&m": JobType.TIME_AND_MATERIAL,
}


def parse_status(value: Any, record_id: Optional[str] = None) -> JobStatus:
    if isinstance(value, JobStatus):
        return value
    if not isinstance(value, str) or _normalise_token(value) not in _STATUS_LOOKUP:
        raise RecordValidationError(f"unknown status {value!r}", record_id, "status")
    return _STATUS_LOOKUP[_normalise_token(value)]


def parse_job_type(value: Any, record_id: Optional[str] = None) -> JobType:
    """Missing job type means fixed price."""
    if _is_missing(value) or value == "":
        return JobType.FIXED_PRICE
    if isinstance(value, JobType):
        return value
    if not isinstance(value, str) or _normalise_token(value) not in _JOB_TYPE_LOOKUP:
        raise RecordValidationError(f"unknown job type {value!r}", record_id, "jobType")
    return _JOB_TYPE_LOOKUP[_normalise_token(value)]


def parse_date(value: Any, name: str, record_id: Optional[str] = None) -> Optional[date]:
    """ISO date or an unscheduled marker ("unscheduled", "TBD", blank) -> None."""
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in UNSCHEDULED_MARKERS:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise RecordValidationError(f"{name} is not an ISO date: {value!r}", record_id, name)


def parse_timestamp(value: Any, name: str, record_id: Optional[str] = None) -> Optional[datetime]:
    if _is_missing(value) or value == "":
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    raise RecordValidationError(f"{name} is not an ISO timestamp: {value!r}", record_id, name)


def _text(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value)


def parse_tm_settings(value: Any, record_id: Optional[str] = None) -> Optional[TMSettings]:
    if _is_missing(value):
        return None
    if isinstance(value, TMSettings):
        return value
    if not isinstance(value, Mapping):
        raise RecordValidationError("tmSettings must be a mapping", record_id, "tmSettings")

    billing_type = _lookup(value, "laborBillingType") or LaborBillingType.MARKUP.value
    try:
        billing_type = LaborBillingType(billing_type)
    except ValueError:
        raise RecordValidationError(f"unknown labor billing type {billing_type!r}", record_id, "tmSettings.laborBillingType")

    def amount(key):
        return _optional_amount(_lookup(value, key), f"tmSettings.{key}", record_id)

    return TMSettings(
        labor_billing_type=billing_type,
        labor_markup=amount("laborMarkup"),
        labor_bill_rate=amount("laborBillRate"),
        labor_hours=amount("laborHours"),
        material_markup=amount("materialMarkup"),
        other_markup=amount("otherMarkup"),
    )


def _whole_number(value: Any, name: str, record_id: Optional[str] = None) -> int:
    """Integral number or numeric string. Booleans and fractions are rejected."""
    try:
        number = to_money(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        raise RecordValidationError(f"{name} is not a whole number: {value!r}", record_id, name)
    if not number.is_finite() or number != number.to_integral_value():
        raise RecordValidationError(f"{name} is not a whole number: {value!r}", record_id, name)
    return int(number)


def parse_mobilizations(value: Any, record_id: Optional[str] = None) -> Tuple[MobilizationPhase, ...]:
    """Mobilization phases of a job. Disabled phases are kept; their dates may be blank."""
    if _is_missing(value):
        return ()
    if not isinstance(value, (list, tuple)):
        raise RecordValidationError("mobilizations must be a list", record_id, "mobilizations")

    phases = []
    for position, phase in enumerate(value):
        name = f"mobilizations[{position}]"
        if isinstance(phase, MobilizationPhase):
            phases.append(phase)
            continue
        if not isinstance(phase, Mapping):
            raise RecordValidationError(f"{name} must be a mapping", record_id, name)

        enabled = _lookup(phase, "enabled")
        if _is_missing(enabled):
            enabled = True
        elif not isinstance(enabled, bool):
            raise RecordValidationError(f"{name}.enabled must be true or false", record_id, f"{name}.enabled")

        phases.append(MobilizationPhase(
            id=_whole_number(_lookup(phase, "id"), f"{name}.id", record_id),
            enabled=enabled,
            mobilize_date=parse_date(_lookup(phase, "mobilizeDate"), f"{name}.mobilizeDate", record_id),
            demobilize_date=parse_date(_lookup(phase, "demobilizeDate"), f"{name}.demobilizeDate", record_id),
            description=_text(_lookup(phase, "description")),
        ))
    return tuple(phases)


# =============================================================================
# RECORD PARSERS
# =============================================================================

def parse_job_record(record: Mapping[str, Any], strict: bool = True) -> JobRecord:
    """
    Build a FixedPriceJob or TimeAndMaterialJob from a plain mapping.

    Keys may be camelCase (``jobNo``) or snake_case (``job_no``). With
    ``strict`` an On Hold status without an on-hold date (or the reverse)
    raises; otherwise it is logged and the record is kept as given.
    """
    if not isinstance(record, Mapping):
        raise RecordValidationError(f"job record must be a mapping, got {type(record).__name__}")

    record_id = _text(_lookup(record, "id")) or None
    _require(record, "job", record_id)

    status = parse_status(_lookup(record, "status"), record_id)
    job_type = parse_job_type(_lookup(record, "jobType"), record_id)
    on_hold_date = parse_timestamp(_lookup(record, "onHoldDate"), "onHoldDate", record_id)

    if (status == JobStatus.ON_HOLD) != (on_hold_date is not None):
        message = (
            "onHoldDate is required while On Hold"
            if status == JobStatus.ON_HOLD
            else f"onHoldDate set on a job with status {status.value!r}"
        )
        if strict:
            raise RecordValidationError(message, record_id, "onHoldDate")
        logger.warning("on-hold invariant violated", extra={"record_id": record_id, "detail": message})

    kwargs = dict(
        id=record_id,
        job_no=_text(_lookup(record, "jobNo")),
        job_name=_text(_lookup(record, "jobName")),
        status=status,
        contract=parse_breakdown(_lookup(record, "contract"), "contract", record_id),
        budget=parse_breakdown(_lookup(record, "budget"), "budget", record_id),
        invoiced=parse_breakdown(_lookup(record, "invoiced"), "invoiced", record_id),
        costs=parse_breakdown(_lookup(record, "costs"), "costs", record_id),
        cost_to_complete=parse_breakdown(_lookup(record, "costToComplete"), "costToComplete", record_id),
        client=_text(_lookup(record, "client")),
        project_manager=_text(_lookup(record, "projectManager")),
        estimator=_text(_lookup(record, "estimator")),
        start_date=parse_date(_lookup(record, "startDate"), "startDate", record_id),
        end_date=parse_date(_lookup(record, "endDate"), "endDate", record_id),
        target_end_date=parse_date(_lookup(record, "targetEndDate"), "targetEndDate", record_id),
        on_hold_date=on_hold_date,
        target_profit=_optional_amount(_lookup(record, "targetProfit"), "targetProfit", record_id),
        target_margin=_optional_amount(_lookup(record, "targetMargin"), "targetMargin", record_id),
        last_updated=parse_timestamp(_lookup(record, "lastUpdated"), "lastUpdated", record_id),
        mobilizations=parse_mobilizations(_lookup(record, "mobilizations"), record_id),
    )
    if job_type == JobType.TIME_AND_MATERIAL:
        kwargs["tm_settings"] = parse_tm_settings(_lookup(record, "tmSettings"), record_id)

    return JOB_CLASSES[job_type](**kwargs)


def parse_jobs(records: Iterable[Mapping[str, Any]], strict: bool = True) -> ParseResult:
    """
    Parse a collection of job mappings.

    Strict mode raises on the first bad record. Otherwise bad records
    are logged, collected in ``errors`` and left out of ``jobs``.
    """
    result = ParseResult()
    for position, record in enumerate(records):
        try:
            result.jobs.append(parse_job_record(record, strict=strict))
        except RecordValidationError as exc:
            if strict:
                raise
            logger.warning("skipping invalid job record", extra={"position": position, "error": str(exc)})
            result.errors.append(exc)
    return result


def parse_change_order(record: Mapping[str, Any]) -> ChangeOrder:
    """Build a ChangeOrder from a plain mapping; same key conventions as job records."""
    if not isinstance(record, Mapping):
        raise RecordValidationError(f"change order must be a mapping, got {type(record).__name__}")

    record_id = _text(_lookup(record, "id")) or None
    _require(record, "change_order", record_id)

    status = _lookup(record, "status")
    try:
        status = ChangeOrderStatus(status.strip().lower() if isinstance(status, str) else status)
    except ValueError:
        raise RecordValidationError(f"unknown change order status {status!r}", record_id, "status")

    co_type = parse_job_type(_lookup(record, "coType"), record_id)
    co_number = _lookup(record, "coNumber")

    return ChangeOrder(
        id=record_id,
        job_id=_text(_lookup(record, "jobId")),
        status=status,
        contract=parse_breakdown(_lookup(record, "contract"), "contract", record_id),
        budget=parse_breakdown(_lookup(record, "budget"), "budget", record_id),
        invoiced=parse_breakdown(_lookup(record, "invoiced"), "invoiced", record_id),
        costs=parse_breakdown(_lookup(record, "costs"), "costs", record_id),
        cost_to_complete=parse_breakdown(_lookup(record, "costToComplete"), "costToComplete", record_id),
        co_number=0 if _is_missing(co_number) else _whole_number(co_number, "coNumber", record_id),
        description=_text(_lookup(record, "description")),
        co_type=co_type,
        tm_settings=(
            parse_tm_settings(_lookup(record, "tmSettings"), record_id)
            if co_type == JobType.TIME_AND_MATERIAL else None
        ),
        submitted_date=parse_date(_lookup(record, "submittedDate"), "submittedDate", record_id),
        approved_date=parse_date(_lookup(record, "approvedDate"), "approvedDate", record_id),
        completed_date=parse_date(_lookup(record, "completedDate"), "completedDate", record_id),
    )


def parse_capacity_row(record: Mapping[str, Any]) -> CapacityRow:
    if not isinstance(record, Mapping):
        raise RecordValidationError(f"capacity row must be a mapping, got {type(record).__name__}", field="rows")

    row_id = _text(_lookup(record, "id")) or None
    _require(record, "capacity_row", row_id)

    values = {}
    for name in ["headcount", "hoursPerPerson", "committedHours"]:
        amount = parse_amount(_lookup(record, name), name, row_id)
        if amount < 0:
            raise RecordValidationError(f"{name} must not be negative", row_id, name)
        values[_snake(name)] = amount

    return CapacityRow(
        discipline=_text(_lookup(record, "discipline")),
        label=_text(_lookup(record, "label")),
        id=row_id or "",
        **values,
    )


def parse_capacity_plan(record: Mapping[str, Any]) -> CapacityPlan:
    if not isinstance(record, Mapping):
        raise RecordValidationError(f"capacity plan must be a mapping, got {type(record).__name__}")
    _require(record, "capacity_plan", None)

    horizon = _whole_number(_lookup(record, "planningHorizonWeeks"), "planningHorizonWeeks")
    if horizon <= 0:
        raise RecordValidationError("planningHorizonWeeks must be positive", field="planningHorizonWeeks")

    rows = _lookup(record, "rows")
    if not isinstance(rows, (list, tuple)):
        raise RecordValidationError("rows must be a list", field="rows")

    return CapacityPlan(
        planning_horizon_weeks=horizon,
        rows=tuple(parse_capacity_row(row) for row in rows),
        notes=_text(_lookup(record, "notes")) or None,
        last_updated=parse_timestamp(_lookup(record, "lastUpdated"), "lastUpdated"),
    )


def parse_snapshot(record: Mapping[str, Any]) -> JobsSnapshot:
    if not isinstance(record, Mapping):
        raise RecordValidationError(f"snapshot must be a mapping, got {type(record).__name__}")
    _require(record, "snapshot", None)

    timestamp = parse_timestamp(_lookup(record, "timestamp"), "timestamp")
    if timestamp is None:
        raise RecordValidationError("snapshot timestamp is blank", field="timestamp")

    jobs = _lookup(record, "jobs")
    if not isinstance(jobs, (list, tuple)):
        raise RecordValidationError("jobs must be a list", field="jobs")

    return JobsSnapshot(timestamp=timestamp, jobs=tuple(parse_jobs(jobs, strict=True).jobs))


# =============================================================================
# FLAT TABLES
# =============================================================================

_BREAKDOWN_COLUMNS = ["contract", "budget", "invoiced", "costs", "cost_to_complete"]
_FLAT_BREAKDOWN_COLUMNS = {f"{name}_{part}" for name in _BREAKDOWN_COLUMNS for part in BREAKDOWN_FIELDS}


def _row_to_record(row: Mapping[str, Any]) -> Dict[str, Any]:
    record = {key: value for key, value in row.items() if key not in _FLAT_BREAKDOWN_COLUMNS}
    for name in _BREAKDOWN_COLUMNS:
        record[name] = {part: row[f"{name}_{part}"] for part in BREAKDOWN_FIELDS}
    return record


def jobs_from_frame(df: pd.DataFrame, strict: bool = True) -> ParseResult:
    """
    Parse a flattened jobs table (breakdowns as ``contract_labor`` etc.).

    Missing required columns raise SchemaValidationError regardless of
    ``strict``; ``strict`` only governs per-record errors.
    """
    validate_schema(df, "jobs", strict=True)
    records = [_row_to_record(row) for row in df.to_dict(orient="records")]
    return parse_jobs(records, strict=strict)
