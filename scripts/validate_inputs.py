#!/usr/bin/env python
"""
Validate an import workbook against the sheet and header requirements.

Usage:
    python scripts/validate_inputs.py data/2025_data.xlsx
"""
import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd
from src.config import SHEET_NAMES
from src.data.schema import validate_schema
from src.data.sheets import parse_metadata_frame, parse_timesheet_frame


def validate_sheet(workbook: pd.ExcelFile, table_name: str) -> dict:
    """Validate a single sheet."""
    sheet_name = SHEET_NAMES[table_name]
    result = {
        "exists": False,
        "rows": 0,
        "columns": 0,
        "valid": False,
        "missing_required": [],
        "missing_optional": [],
        "row_errors": [],
        "errors": []
    }

    if sheet_name not in workbook.sheet_names:
        result["errors"].append(f"Sheet not found: {sheet_name}")
        return result

    result["exists"] = True
    df = workbook.parse(sheet_name)
    result["rows"] = len(df)
    result["columns"] = len(df.columns)

    schema_result = validate_schema(df, table_name, strict=False)
    result["valid"] = schema_result["is_valid"]
    result["missing_required"] = schema_result["missing_required"]
    result["missing_optional"] = schema_result["missing_optional"]

    if result["valid"]:
        parse = parse_timesheet_frame if table_name == "timesheet" else parse_metadata_frame
        _, result["row_errors"] = parse(df)

    return result


def main():
    parser = argparse.ArgumentParser(description="Validate an import workbook")
    parser.add_argument("workbook", type=str, help="Path to the .xlsx workbook")

    args = parser.parse_args()
    path = Path(args.workbook)

    print("=" * 60)
    print("Workbook Validation")
    print("=" * 60)
    print(f"Workbook: {path}")
    print()

    if not path.exists():
        print(f"✗ File not found: {path}")
        sys.exit(1)

    all_valid = True

    with pd.ExcelFile(path) as workbook:
        for table_name, sheet_name in SHEET_NAMES.items():
            print(f"Validating: {sheet_name} ({table_name})")
            print("-" * 40)

            result = validate_sheet(workbook, table_name)

            if result["exists"]:
                print(f"  ✓ Found sheet")
                print(f"    Rows: {result['rows']:,}")
                print(f"    Columns: {result['columns']}")

                if result["valid"]:
                    print(f"  ✓ Headers valid")
                else:
                    print(f"  ✗ Headers invalid")
                    print(f"    Missing required: {result['missing_required']}")
                    all_valid = False

                if result["missing_optional"]:
                    print(f"  ⚠ Missing optional: {result['missing_optional']}")

                if result["row_errors"]:
                    print(f"  ⚠ {len(result['row_errors'])} rows would be skipped")
                    for err in result["row_errors"][:10]:
                        print(f"    row {err.row_number}: {err.reason}")

            for err in result["errors"]:
                print(f"  ✗ Error: {err}")
                all_valid = False

            print()

    print("=" * 60)
    if all_valid:
        print("✓ All validations passed")
        sys.exit(0)
    else:
        print("✗ Validation failed - see errors above")
        sys.exit(1)


if __name__ == "__main__":
    main()
