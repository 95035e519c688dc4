#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from shiftbank.logging_utils import setup_json_logging
from shiftbank.services.exports import build_statistics, monthly_summary_csv, record_to_dict, summary_to_dict
from shiftbank.services.ledger import build_ledger_from_records
from shiftbank.services.normalizer import DayRecord, RosterParseResult, YearMonth, normalize_roster
from shiftbank.services.roster_io import (
    check_file_availability,
    load_initial_offsets,
    month_range,
    read_roster_file,
)
from shiftbank.services.shift_codes import build_shift_table
from shiftbank.settings import get_initial_offsets_path, get_nursing_half_value, get_settings

CONVERTER_VERSION = "1.0.0"
logger = logging.getLogger("shiftbank.batch")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Convert monthly roster CSV files into one ledger.")
    parser.add_argument("--start", required=True, type=YearMonth.parse, help="First month, YYYY-MM")
    parser.add_argument("--end", required=True, type=YearMonth.parse, help="Last month, YYYY-MM")
    parser.add_argument("--csv-dir", type=Path, default=Path(settings.roster_dir))
    parser.add_argument("--output-dir", type=Path, default=Path(settings.output_dir))
    parser.add_argument("--offsets", type=Path, default=get_initial_offsets_path())
    return parser.parse_args(argv)


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    setup_json_logging(get_settings().log_level)
    args = _parse_args(argv)
    if args.end < args.start:
        print(json.dumps({"ok": False, "error": "end month is before start month"}, ensure_ascii=False))
        return 1

    availability = check_file_availability(args.csv_dir, month_range(args.start, args.end))
    if availability.missing:
        logger.warning("roster_files_missing", extra={"missing": availability.missing})

    try:
        offsets = load_initial_offsets(args.offsets)
    except ValueError as exc:
        logger.error("initial_offsets_invalid", extra={"path": str(args.offsets), "error": str(exc)})
        offsets = {}

    table = build_shift_table(nursing_half_value=get_nursing_half_value())
    file_details: list[dict[str, Any]] = []
    parse_results: list[RosterParseResult] = []
    records: list[DayRecord] = []
    for path in availability.existing:
        try:
            sheet = read_roster_file(path)
            result = normalize_roster(
                sheet.rows,
                year=sheet.year_month.year,
                month=sheet.year_month.month,
                table=table,
            )
        except (OSError, ValueError) as exc:
            logger.error("roster_file_failed", extra={"path": str(path), "error": str(exc)})
            file_details.append({"file": path.name, "status": "error", "error": str(exc), "records": 0})
            continue

        parse_results.append(result)
        records.extend(result.records)
        file_details.append(
            {
                "file": path.name,
                "status": "success" if result.records else "empty",
                "records": len(result.records),
                "employees": result.employee_count,
                "skipped_rows": len(result.skipped_rows),
                "unknown_codes": dict(result.unknown_codes),
            }
        )

    ledger = build_ledger_from_records(records, offsets=offsets, parse_results=parse_results)
    successful = [item for item in file_details if item["status"] == "success"]
    date_range = ledger.date_range

    metadata = {
        "conversion_date": datetime.now(timezone.utc).isoformat(),
        "requested_date_range": {"start": str(args.start), "end": str(args.end)},
        "actual_date_range": {
            "start": date_range[0].isoformat() if date_range else None,
            "end": date_range[1].isoformat() if date_range else None,
        },
        "files_processed": len(file_details),
        "files_successful": len(successful),
        "files_with_errors": sum(1 for item in file_details if item["status"] == "error"),
        "files_empty": sum(1 for item in file_details if item["status"] == "empty"),
        "files_missing": availability.missing,
        "file_details": file_details,
        "converter_version": CONVERTER_VERSION,
    }

    args.output_dir.mkdir(parents=True, exist_ok=True)
    base = args.output_dir / f"rosters_{args.start}_to_{args.end}"
    outputs = {
        "records": Path(f"{base}_records.json"),
        "statistics": Path(f"{base}_statistics.json"),
        "summaries": Path(f"{base}_summaries.json"),
        "metadata": Path(f"{base}_metadata.json"),
    }
    _write_json(outputs["records"], [record_to_dict(record) for record in ledger.records])
    _write_json(outputs["statistics"], build_statistics(ledger))
    _write_json(outputs["summaries"], [summary_to_dict(summary) for summary in ledger.summaries])
    _write_json(outputs["metadata"], metadata)
    summary_csvs: list[Path] = []
    for year_month in ledger.months:
        csv_path = args.output_dir / f"{year_month}_summary.csv"
        csv_path.write_text(
            monthly_summary_csv(ledger.monthly_for(year_month.year, year_month.month)),
            encoding="utf-8-sig",
        )
        summary_csvs.append(csv_path)

    summary = {
        "generated_at_utc": metadata["conversion_date"],
        "ok": bool(successful),
        "records": len(ledger.records),
        "employees": ledger.employee_count,
        "months": len(ledger.months),
        "files_successful": len(successful),
        "files_missing": len(availability.missing),
        "outputs": {name: str(path) for name, path in outputs.items()},
        "monthly_summaries": [str(path) for path in summary_csvs],
    }
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0 if successful else 1


if __name__ == "__main__":
    raise SystemExit(main())
