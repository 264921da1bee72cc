#!/usr/bin/env python
"""
Validate a jobs export against the engine's record requirements.

Usage:
    python scripts/validate_inputs.py data/jobs.json
    python scripts/validate_inputs.py data/jobs.csv --strict
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from wip_engine.data.loader import load_jobs_file
from wip_engine.data.schema import RecordValidationError, SchemaValidationError
from wip_engine.logging_config import configure_logging


def validate_file(filepath: Path, strict: bool = False) -> dict:
    """Validate a single jobs file."""
    result = {
        "exists": filepath.exists() or filepath.with_suffix(".csv").exists()
        or filepath.with_suffix(".parquet").exists(),
        "jobs": 0,
        "valid": False,
        "errors": [],
    }

    if not result["exists"]:
        result["errors"].append(f"File not found: {filepath}")
        return result

    try:
        parsed = load_jobs_file(filepath, strict=strict)
    except (SchemaValidationError, RecordValidationError, ValueError) as e:
        result["errors"].append(str(e))
        return result

    result["jobs"] = len(parsed.jobs)
    result["valid"] = parsed.is_valid
    result["errors"] = [str(err) for err in parsed.errors]
    return result


def main():
    parser = argparse.ArgumentParser(description="Validate a jobs export")
    parser.add_argument("path", type=str, help="Jobs file (.json, .csv or .parquet)")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Stop at the first invalid record"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Logging level for engine messages"
    )

    args = parser.parse_args()
    configure_logging(level=args.log_level)

    filepath = Path(args.path)

    print("=" * 60)
    print("Jobs Input Validation")
    print("=" * 60)
    print(f"Source: {filepath}")
    print()

    result = validate_file(filepath, strict=args.strict)

    if result["exists"]:
        print(f"  Parsed jobs: {result['jobs']:,}")
    for err in result["errors"]:
        print(f"  ✗ Error: {err}")

    print()
    print("=" * 60)
    if result["valid"]:
        print("✓ All validations passed")
        sys.exit(0)
    else:
        print("✗ Validation failed - see errors above")
        sys.exit(1)


if __name__ == "__main__":
    main()
