from __future__ import annotations

import csv
import dataclasses
import enum
import io
from collections.abc import Mapping
from datetime import date, datetime, timezone
from fractions import Fraction
from io import BytesIO
from typing import Any, Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from shiftbank.services import reports
from shiftbank.services.ledger import Ledger
from shiftbank.services.monthly_calc import MonthlyAggregate
from shiftbank.services.normalizer import DayRecord, RosterParseResult, YearMonth
from shiftbank.services.summary import EmployeeSummary

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

MONTHLY_HEADERS = [
    "Employee ID",
    "Employee Name",
    "Month",
    "Days On Record",
    "Legal Holidays",
    "Legal Workdays",
    "Fulfilled",
    "Balance",
    "Cumulative",
]
SUMMARY_HEADERS = [
    "Employee ID",
    "Employee Name",
    "First Date",
    "Last Date",
    "Months",
    "Legal Workdays",
    "Fulfilled",
    "Initial Offset",
    "Balance",
    "Cumulative",
]
SUMMARY_CSV_HEADERS = [
    "Employee ID",
    "Employee Name",
    "Total Days",
    "Work Days",
    "Rest Days",
    "Total Work Value",
    "Night Shifts",
    "Day Shifts",
    "Half Shifts",
    "Sick Leave",
    "Holiday Work",
    "Weekend Work",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
ALERT_FILL = PatternFill(fill_type="solid", fgColor="FDE2E4")
SUCCESS_FILL = PatternFill(fill_type="solid", fgColor="E6F4EA")

HEADER_FONT = Font(bold=True, color="FFFFFF")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)

THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


def number(value: Fraction | int) -> float | int:
    if isinstance(value, Fraction):
        if value.denominator == 1:
            return int(value)
        return float(value)
    return value


def jsonable(value: Any) -> Any:
    """Convert engine values (Fractions, dates, dataclasses, tuples) into JSON-ready data."""
    if isinstance(value, YearMonth):
        return str(value)
    if isinstance(value, Fraction):
        return number(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {item.name: jsonable(getattr(value, item.name)) for item in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(jsonable(key)): jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [jsonable(item) for item in value]
    return value


def record_to_dict(record: DayRecord) -> dict[str, Any]:
    return {
        "employee_id": record.employee_id,
        "employee_name": record.employee_name,
        "date": record.day_date.isoformat(),
        "year": record.year,
        "month": record.month,
        "day": record.day,
        "weekday": record.weekday_name,
        "weekday_number": record.weekday_number,
        "weekday_text": record.weekday_text,
        "is_holiday": record.is_holiday,
        "shift_code": record.shift_code,
        "category": record.category.value,
        "description": record.description,
        "base_work_value": number(record.base_work_value),
        "work_value": number(record.work_value),
        "is_work_day": record.is_work_day,
        "is_rest_day": record.is_rest_day,
        "is_weekend": record.is_weekend,
        "is_night_shift": record.is_night_shift,
        "is_day_shift": record.is_day_shift,
        "is_leave": record.is_leave,
        "flags": list(record.flags),
    }


def aggregate_to_dict(aggregate: MonthlyAggregate, cumulative_balance: Fraction | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "employee_id": aggregate.employee_id,
        "employee_name": aggregate.employee_name,
        "year_month": str(aggregate.year_month),
        "year": aggregate.year,
        "month": aggregate.month,
        "total_days_on_record": aggregate.total_days_on_record,
        "legal_holiday_days_on_record": aggregate.legal_holiday_days_on_record,
        "legal_workday_count": aggregate.legal_workday_count,
        "fulfilled_work_value": number(aggregate.fulfilled_work_value),
        "balance": number(aggregate.balance),
        "work_rate": round(float(aggregate.work_rate), 1),
        "first_date": aggregate.first_date.isoformat(),
        "last_date": aggregate.last_date.isoformat(),
        "work_days": aggregate.work_days,
        "rest_days": aggregate.rest_days,
        "night_shifts": aggregate.night_shifts,
        "day_shifts": aggregate.day_shifts,
        "half_value_days": aggregate.half_value_days,
        "sick_leave_days": aggregate.sick_leave_days,
        "maternity_leave_days": aggregate.maternity_leave_days,
        "leave_days": aggregate.leave_days,
        "holiday_work_days": aggregate.holiday_work_days,
        "weekend_work_days": aggregate.weekend_work_days,
        "unknown_days": aggregate.unknown_days,
        "shift_counts": dict(aggregate.shift_counts),
    }
    if cumulative_balance is not None:
        payload["cumulative_balance"] = number(cumulative_balance)
    return payload


def summary_to_dict(summary: EmployeeSummary) -> dict[str, Any]:
    return {
        "employee_id": summary.employee_id,
        "employee_name": summary.employee_name,
        "initial_offset": number(summary.initial_offset),
        "cumulative_balance": number(summary.cumulative_balance),
        "total_balance": number(summary.total_balance),
        "total_days_on_record": summary.total_days_on_record,
        "total_legal_workdays": summary.total_legal_workdays,
        "total_fulfilled_work_value": number(summary.total_fulfilled_work_value),
        "average_balance_per_month": number(summary.average_balance_per_month()),
        "average_fulfilled_per_month": number(summary.average_fulfilled_per_month()),
        "career_first_date": summary.career_first_date.isoformat(),
        "career_last_date": summary.career_last_date.isoformat(),
        "months_on_record": summary.months_on_record,
        "years_active": summary.years_active,
        "months": [
            aggregate_to_dict(aggregate, summary.running_balances[period])
            for period, aggregate in summary.per_month.items()
        ],
        "years": [
            {
                "year": totals.year,
                "months": totals.months,
                "total_days_on_record": totals.total_days_on_record,
                "legal_holiday_days_on_record": totals.legal_holiday_days_on_record,
                "legal_workday_count": totals.legal_workday_count,
                "fulfilled_work_value": number(totals.fulfilled_work_value),
                "balance": number(totals.balance),
            }
            for totals in summary.per_year.values()
        ],
    }


def parse_result_to_dict(result: RosterParseResult) -> dict[str, Any]:
    return {
        "year_month": str(result.year_month),
        "record_count": len(result.records),
        "employee_count": result.employee_count,
        "skipped_rows": [
            {"row_index": item.row_index, "reason": item.reason} for item in result.skipped_rows
        ],
        "dropped_cells": result.dropped_cells,
        "invalid_day_columns": result.invalid_day_columns,
        "header_day_count": result.header_day_count,
        "days_in_month": result.days_in_month,
        "day_count_mismatch": result.day_count_mismatch,
        "unknown_codes": dict(result.unknown_codes),
    }


def monthly_summary_csv(aggregates: Iterable[MonthlyAggregate]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(SUMMARY_CSV_HEADERS)
    for aggregate in aggregates:
        writer.writerow(
            [
                aggregate.employee_id,
                aggregate.employee_name,
                aggregate.total_days_on_record,
                aggregate.work_days,
                aggregate.rest_days,
                number(aggregate.fulfilled_work_value),
                aggregate.night_shifts,
                aggregate.day_shifts,
                aggregate.half_value_days,
                aggregate.sick_leave_days,
                aggregate.holiday_work_days,
                aggregate.weekend_work_days,
            ]
        )
    return buffer.getvalue()


def _write_header(ws: Worksheet, row: int, headers: list[str]) -> None:
    for column, title in enumerate(headers, start=1):
        cell = ws.cell(row=row, column=column, value=title)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _write_row(ws: Worksheet, row: int, values: list[Any], *, balance_column: int | None = None) -> None:
    for column, value in enumerate(values, start=1):
        cell = ws.cell(row=row, column=column, value=value)
        cell.border = THIN_BORDER
        if row % 2 == 0:
            cell.fill = ZEBRA_FILL
    if balance_column is not None:
        balance = values[balance_column - 1]
        if isinstance(balance, (int, float)) and balance < 0:
            ws.cell(row=row, column=balance_column).fill = ALERT_FILL
        elif isinstance(balance, (int, float)) and balance > 0:
            ws.cell(row=row, column=balance_column).fill = SUCCESS_FILL


def _autosize(ws: Worksheet, headers: list[str]) -> None:
    for column, title in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(column)].width = max(12, len(title) + 4)


def _build_summary_sheet(ws: Worksheet, summaries: Iterable[EmployeeSummary]) -> None:
    ws.title = "Summary"
    ws.cell(row=1, column=1, value="Banked rest days").font = TITLE_FONT
    ws.cell(row=2, column=1, value=f"Generated {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')} UTC")
    _write_header(ws, 4, SUMMARY_HEADERS)
    row = 5
    for summary in summaries:
        _write_row(
            ws,
            row,
            [
                summary.employee_id,
                summary.employee_name,
                summary.career_first_date.isoformat(),
                summary.career_last_date.isoformat(),
                summary.months_on_record,
                summary.total_legal_workdays,
                number(summary.total_fulfilled_work_value),
                number(summary.initial_offset),
                number(summary.total_balance),
                number(summary.cumulative_balance),
            ],
            balance_column=len(SUMMARY_HEADERS),
        )
        row += 1
    ws.freeze_panes = "A5"
    _autosize(ws, SUMMARY_HEADERS)


def _build_monthly_sheet(ws: Worksheet, summaries: Iterable[EmployeeSummary]) -> None:
    ws.title = "Monthly"
    _write_header(ws, 1, MONTHLY_HEADERS)
    row = 2
    for summary in summaries:
        for period, aggregate in summary.per_month.items():
            _write_row(
                ws,
                row,
                [
                    aggregate.employee_id,
                    aggregate.employee_name,
                    str(period),
                    aggregate.total_days_on_record,
                    aggregate.legal_holiday_days_on_record,
                    aggregate.legal_workday_count,
                    number(aggregate.fulfilled_work_value),
                    number(aggregate.balance),
                    number(summary.running_balances[period]),
                ],
                balance_column=8,
            )
            row += 1
    ws.freeze_panes = "A2"
    _autosize(ws, MONTHLY_HEADERS)


def build_ledger_xlsx_bytes(ledger: Ledger) -> bytes:
    workbook = Workbook()
    _build_summary_sheet(workbook.active, ledger.summaries)
    _build_monthly_sheet(workbook.create_sheet(), ledger.summaries)

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def build_statistics(ledger: Ledger) -> dict[str, Any]:
    overview = reports.dataset_overview(ledger)
    return {
        "overview": jsonable(overview),
        "work_rate": round(float(overview.work_patterns.work_rate), 1),
        "yearly_breakdown": jsonable(reports.yearly_trends(ledger.records)),
        "seasonal_patterns": jsonable(reports.seasonal_patterns(ledger.records)),
        "shift_type_distribution": jsonable(reports.shift_code_distribution(ledger.records)),
        "category_distribution": jsonable(reports.category_distribution(ledger.records)),
        "unknown_codes": reports.unknown_code_audit(ledger.records),
    }
