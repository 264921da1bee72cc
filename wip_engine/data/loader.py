"""
Data loading utilities for job exports.

Tooling adapter for scripts/validate_inputs.py. The calculation modules
never read files; they take records already in memory.
"""
import json
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from wip_engine.data.schema import ParseResult, jobs_from_frame, parse_jobs
from wip_engine.logging_config import get_logger

logger = get_logger("data.loader")


def _load_file(filepath: Path) -> Optional[pd.DataFrame]:
    """Load a flattened jobs table (parquet or csv) by stem."""
    parquet_path = filepath.with_suffix(".parquet")
    csv_path = filepath.with_suffix(".csv")

    if parquet_path.exists():
        return pd.read_parquet(parquet_path)
    elif csv_path.exists():
        # Keep ids and job numbers as text
        return pd.read_csv(csv_path, dtype={"id": str, "job_no": str})
    return None


def load_jobs_file(path: Union[str, Path], strict: bool = False) -> ParseResult:
    """
    Load jobs from a JSON export (list of job records) or a flat table.

    Bad records are collected in the result unless ``strict``.
    """
    path = Path(path)
    logger.info("loading jobs", extra={"path": str(path)})

    if path.suffix.lower() == ".json":
        with path.open(encoding="utf-8") as fh:
            payload = json.load(fh)
        if isinstance(payload, dict):
            payload = payload.get("jobs", [])
        return parse_jobs(payload, strict=strict)

    df = _load_file(path)
    if df is None:
        raise FileNotFoundError(f"no jobs file at {path} (.json, .parquet or .csv)")
    return jobs_from_frame(df, strict=strict)
